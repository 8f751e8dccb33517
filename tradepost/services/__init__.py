"""
TradePost services.

Business logic for the card marketplace and direct messaging.
"""

from tradepost.services.collection import add_card_to_collection, get_collection
from tradepost.services.identity import (
    IdentityVerifier,
    JwtIdentityVerifier,
    build_identity_verifier,
    parse_bearer,
)
from tradepost.services.marketplace import (
    TRANSITIONS,
    MarketplaceOperation,
    TransitionPlan,
    get_cards_for_sale,
    list_card_for_sale,
    mark_card_sold,
    plan_transition,
    unlist_card,
    validate_price,
)
from tradepost.services.message_router import (
    ConnectionRegistry,
    MessageRouter,
    get_conversation_history,
)

__all__ = [
    "TRANSITIONS",
    "ConnectionRegistry",
    "IdentityVerifier",
    "JwtIdentityVerifier",
    "MarketplaceOperation",
    "MessageRouter",
    "TransitionPlan",
    "add_card_to_collection",
    "build_identity_verifier",
    "get_cards_for_sale",
    "get_collection",
    "get_conversation_history",
    "list_card_for_sale",
    "mark_card_sold",
    "parse_bearer",
    "plan_transition",
    "unlist_card",
    "validate_price",
]
