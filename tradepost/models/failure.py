"""
Response Envelope and Failure Classification.

Every REST endpoint answers with the same envelope:

    {"success": bool, "data": T | null, "message": str}

Failures additionally carry an ``error`` block with a machine-readable
``kind`` so callers can tell the failure classes apart:

- AuthenticationFailure: missing or invalid bearer credential
- AuthorizationError: caller does not own the target resource
- InvalidArgument: request rejected before any store access
- InvalidStateTransition: operation not legal from the card's current status
- NotFound: referenced card or user does not exist
- TransientFailure: storage failure; not retried by the server

INVARIANT: A failed state-mutating operation never persists a partial update.
The request transaction is rolled back whenever one of these errors escapes.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from fastapi import status
from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    AUTHENTICATION_FAILURE = "authentication_failure"
    AUTHORIZATION_ERROR = "authorization_error"
    INVALID_ARGUMENT = "invalid_argument"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    NOT_FOUND = "not_found"
    TRANSIENT_FAILURE = "transient_failure"
    INTERNAL_ERROR = "internal_error"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )


class ApiResponse(BaseModel, Generic[T]):
    """Universal response envelope for all REST endpoints."""

    success: bool
    data: T | None = None
    message: str = ""
    error: FailureDetail | None = Field(
        default=None,
        description="Failure details (present when success is false)",
    )

    @classmethod
    def ok(cls, data: T, message: str) -> "ApiResponse[T]":
        """Create a success response."""
        return cls(success=True, data=data, message=message)

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
    ) -> "ApiResponse[Any]":
        """Create a failure response."""
        return cls(
            success=False,
            data=None,
            message=message,
            error=FailureDetail(kind=kind, detail=detail),
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclasses fix the kind and HTTP status; the message is user-appropriate.
    """

    kind: FailureKind = FailureKind.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.failure(kind=self.kind, message=self.message, detail=self.detail)


class AuthenticationFailure(KnownError):
    """Missing, malformed, or rejected bearer credential."""

    kind = FailureKind.AUTHENTICATION_FAILURE
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(KnownError):
    """The caller is not allowed to act on the target resource."""

    kind = FailureKind.AUTHORIZATION_ERROR
    status_code = status.HTTP_403_FORBIDDEN


class InvalidArgument(KnownError):
    """A request argument is invalid (e.g. a non-positive price)."""

    kind = FailureKind.INVALID_ARGUMENT
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStateTransition(KnownError):
    """
    The requested operation is not legal from the card's current status.

    Carries both ends of the rejected transition for logging.
    """

    kind = FailureKind.INVALID_STATE_TRANSITION
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_status: str, operation: str):
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            message=f"Cannot {operation.replace('_', ' ')} a card that is {current_status}.",
            detail=f"{current_status} -/-> {operation}",
        )


class NotFound(KnownError):
    """A referenced card or user does not exist."""

    kind = FailureKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class TransientFailure(KnownError):
    """Storage failure. The server does not retry; clients may."""

    kind = FailureKind.TRANSIENT_FAILURE
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
