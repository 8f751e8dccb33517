from tradepost.models.card import Card, CardStatus
from tradepost.models.failure import (
    ApiResponse,
    AuthenticationFailure,
    AuthorizationError,
    FailureDetail,
    FailureKind,
    InvalidArgument,
    InvalidStateTransition,
    KnownError,
    NotFound,
    TransientFailure,
)
from tradepost.models.message import ChatMessage, DeliveryOutcome
from tradepost.models.user import AuthenticatedIdentity, User

__all__ = [
    "ApiResponse",
    "AuthenticatedIdentity",
    "AuthenticationFailure",
    "AuthorizationError",
    "Card",
    "CardStatus",
    "ChatMessage",
    "DeliveryOutcome",
    "FailureDetail",
    "FailureKind",
    "InvalidArgument",
    "InvalidStateTransition",
    "KnownError",
    "NotFound",
    "TransientFailure",
    "User",
]
