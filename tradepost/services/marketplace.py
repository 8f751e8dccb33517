"""
Marketplace State Machine — card lifecycle transitions.

Legal transitions:

    IN_COLLECTION --list(price)--> FOR_SALE      (sets price)
    FOR_SALE      --unlist------->  IN_COLLECTION (clears price)
    FOR_SALE      --mark_sold---->  SOLD          (keeps price as sale record)

Every other (status, operation) pair is refused with InvalidStateTransition.

Checks run in a fixed order and stop at the first failure:
1. argument (price), before any store access
2. existence (NotFound)
3. ownership (AuthorizationError)
4. status (InvalidStateTransition)

INVARIANT: A transition is all-or-nothing. The card row is locked for the
rest of the transaction and status and price change together; any error
leaves the card exactly as it was.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.config import MAX_LISTING_PRICE, PRICE_QUANTUM
from tradepost.db.operations import (
    card_to_model,
    cards_to_models,
    get_card,
    get_cards_by_status,
    get_usernames,
)
from tradepost.models.card import Card, CardStatus
from tradepost.models.failure import (
    AuthorizationError,
    InvalidArgument,
    InvalidStateTransition,
    NotFound,
)

logger = logging.getLogger(__name__)


class MarketplaceOperation(str, Enum):
    """Operations that move a card between statuses."""

    LIST = "list"
    UNLIST = "unlist"
    MARK_SOLD = "mark_sold"


TRANSITIONS: dict[tuple[CardStatus, MarketplaceOperation], CardStatus] = {
    (CardStatus.IN_COLLECTION, MarketplaceOperation.LIST): CardStatus.FOR_SALE,
    (CardStatus.FOR_SALE, MarketplaceOperation.UNLIST): CardStatus.IN_COLLECTION,
    (CardStatus.FOR_SALE, MarketplaceOperation.MARK_SOLD): CardStatus.SOLD,
}


@dataclass(frozen=True, slots=True)
class TransitionPlan:
    """The status and price a card will have after a legal transition."""

    card_id: int
    from_status: CardStatus
    to_status: CardStatus
    price: Decimal | None


def validate_price(price: Decimal | int | float | str | None) -> Decimal:
    """
    Normalize a listing price to two decimal places.

    Raises:
        InvalidArgument: If the price is missing, not a number, not positive,
            or too large to store
    """
    if price is None:
        raise InvalidArgument("Price is required to list a card.")
    try:
        amount = Decimal(str(price))
    except InvalidOperation as e:
        raise InvalidArgument("Price must be a number.", detail=repr(price)) from e
    if not amount.is_finite():
        raise InvalidArgument("Price must be a finite number.", detail=str(amount))

    # Range first: quantizing a huge exponent overflows the decimal context
    if amount > MAX_LISTING_PRICE:
        raise InvalidArgument(
            f"Price cannot exceed {MAX_LISTING_PRICE}.", detail=str(amount)
        )
    if amount > 0:
        amount = amount.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise InvalidArgument("Price must be a positive value.", detail=str(amount))
    return amount


def plan_transition(
    card: Card,
    operation: MarketplaceOperation,
    caller_subject_id: str,
    price: Decimal | None = None,
) -> TransitionPlan:
    """
    Decide the outcome of an operation on a card without touching the store.

    ``price`` must already be validated for LIST and is ignored otherwise.

    Raises:
        AuthorizationError: If the caller does not own the card
        InvalidStateTransition: If the operation is not legal from the card's status
    """
    if not card.is_owned_by(caller_subject_id):
        raise AuthorizationError(
            "User does not have permission to modify this card.",
            detail=f"card {card.id}",
        )

    to_status = TRANSITIONS.get((card.status, operation))
    if to_status is None:
        raise InvalidStateTransition(card.status.value, operation.value)

    if to_status == CardStatus.FOR_SALE:
        new_price = price
    elif to_status == CardStatus.IN_COLLECTION:
        new_price = None
    else:
        new_price = card.price

    return TransitionPlan(
        card_id=card.id,
        from_status=card.status,
        to_status=to_status,
        price=new_price,
    )


async def _apply_transition(
    session: AsyncSession,
    card_id: int,
    operation: MarketplaceOperation,
    caller_subject_id: str,
    price: Decimal | None = None,
) -> Card:
    db_card = await get_card(session, card_id, for_update=True)
    if db_card is None:
        raise NotFound(f"Card not found with id: {card_id}")

    usernames = await get_usernames(session, {db_card.owner_subject_id})
    owner_username = usernames.get(db_card.owner_subject_id, db_card.owner_subject_id)
    plan = plan_transition(
        card_to_model(db_card, owner_username), operation, caller_subject_id, price
    )

    db_card.status = plan.to_status
    db_card.price = plan.price
    await session.flush()

    logger.info(
        "Card %d: %s -> %s (%s)",
        plan.card_id,
        plan.from_status.value,
        plan.to_status.value,
        operation.value,
    )
    return card_to_model(db_card, owner_username)


async def list_card_for_sale(
    session: AsyncSession,
    card_id: int,
    price: Decimal | int | float | str | None,
    caller_subject_id: str,
) -> Card:
    """List a card in the caller's collection for sale at the given price."""
    amount = validate_price(price)
    return await _apply_transition(
        session, card_id, MarketplaceOperation.LIST, caller_subject_id, amount
    )


async def unlist_card(session: AsyncSession, card_id: int, caller_subject_id: str) -> Card:
    """Withdraw a listing; the card returns to the collection without a price."""
    return await _apply_transition(session, card_id, MarketplaceOperation.UNLIST, caller_subject_id)


async def mark_card_sold(session: AsyncSession, card_id: int, caller_subject_id: str) -> Card:
    """Mark a listed card as sold, keeping its price as the sale record."""
    return await _apply_transition(
        session, card_id, MarketplaceOperation.MARK_SOLD, caller_subject_id
    )


async def get_cards_for_sale(session: AsyncSession) -> list[Card]:
    """All current listings across every user."""
    return await cards_to_models(session, await get_cards_by_status(session, CardStatus.FOR_SALE))
