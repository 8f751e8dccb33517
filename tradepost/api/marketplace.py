"""
Marketplace API endpoints.

Lists, unlists and marks cards as sold, and browses current listings.
State rules live in ``tradepost.services.marketplace``.
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.api.dependencies import CurrentIdentity, ensure_acting_user
from tradepost.api.schemas import CamelModel, CardResponse
from tradepost.db.database import get_session
from tradepost.models.failure import ApiResponse
from tradepost.services.marketplace import (
    get_cards_for_sale,
    list_card_for_sale,
    mark_card_sold,
    unlist_card,
)

router = APIRouter(prefix="/marketplace", tags=["marketplace"])


class ChangeCardStatusRequest(CamelModel):
    """Request model for unlisting or marking a card as sold."""

    user_id: str | None = Field(
        default=None,
        description="Acting user; must match the authenticated user when given",
    )


class ListCardRequest(ChangeCardStatusRequest):
    """Request model for listing a card for sale."""

    # Validated by the state machine so that a missing price is an
    # invalid_argument failure rather than a schema error
    price: Decimal | None = Field(
        default=None,
        description="Asking price, positive, two decimal places",
        examples=["10.00"],
    )


@router.put("/list/{card_id}", response_model=ApiResponse[CardResponse])
async def list_card(
    card_id: int,
    request: ListCardRequest,
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ApiResponse[CardResponse]:
    """List a card from the caller's collection for sale."""
    caller = ensure_acting_user(identity, request.user_id)
    card = await list_card_for_sale(session, card_id, request.price, caller)
    return ApiResponse.ok(CardResponse.from_model(card), "Card listed for sale successfully.")


@router.put("/unlist/{card_id}", response_model=ApiResponse[CardResponse])
async def unlist(
    card_id: int,
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
    request: ChangeCardStatusRequest | None = None,
) -> ApiResponse[CardResponse]:
    """Withdraw a listing; the card returns to the caller's collection."""
    caller = ensure_acting_user(identity, request.user_id if request else None)
    card = await unlist_card(session, card_id, caller)
    return ApiResponse.ok(CardResponse.from_model(card), "Card listing removed successfully.")


@router.put("/sold/{card_id}", response_model=ApiResponse[CardResponse])
async def mark_sold(
    card_id: int,
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
    request: ChangeCardStatusRequest | None = None,
) -> ApiResponse[CardResponse]:
    """Mark a listed card as sold."""
    caller = ensure_acting_user(identity, request.user_id if request else None)
    card = await mark_card_sold(session, card_id, caller)
    return ApiResponse.ok(CardResponse.from_model(card), "Card marked as sold successfully.")


@router.get("", response_model=ApiResponse[list[CardResponse]])
async def get_listings(
    _identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ApiResponse[list[CardResponse]]:
    """Get every card currently for sale, across all users."""
    cards = await get_cards_for_sale(session)
    return ApiResponse.ok(
        [CardResponse.from_model(card) for card in cards],
        "Marketplace listings fetched successfully.",
    )
