"""
Collection API endpoints.

Adds cards to the caller's collection and lists a user's cards.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.api.dependencies import CurrentIdentity, ensure_acting_user
from tradepost.api.schemas import CamelModel, CardResponse
from tradepost.db.database import get_session
from tradepost.models.failure import ApiResponse
from tradepost.services.collection import add_card_to_collection, get_collection

router = APIRouter(prefix="/collection", tags=["collection"])


class SaveCardRequest(CamelModel):
    """Request model for adding a card to a collection."""

    card_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Display name of the card",
        examples=["Charizard"],
    )
    external_card_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Identifier of the card in the external catalog",
        examples=["base1-4"],
    )
    user_id: str | None = Field(
        default=None,
        description="Owner; must match the authenticated user when given",
    )
    username: str | None = Field(
        default=None,
        max_length=255,
        description="Username to register on first contact (defaults to the token's)",
    )


@router.post("", response_model=ApiResponse[CardResponse])
async def add_card(
    request: SaveCardRequest,
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ApiResponse[CardResponse]:
    """
    Add a card to the caller's collection.

    New cards start IN_COLLECTION without a price.
    """
    owner_id = ensure_acting_user(identity, request.user_id)
    card = await add_card_to_collection(
        session,
        owner_subject_id=owner_id,
        username=request.username or identity.username,
        display_name=request.card_name,
        external_card_id=request.external_card_id,
    )
    return ApiResponse.ok(CardResponse.from_model(card), "Card added to collection.")


@router.get("", response_model=ApiResponse[list[CardResponse]])
async def get_user_collection(
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
    user_id: Annotated[str | None, Query(alias="userId")] = None,
) -> ApiResponse[list[CardResponse]]:
    """
    Get the cards owned by a user.

    Defaults to the caller's own collection. Unknown users have no cards.
    """
    cards = await get_collection(session, user_id or identity.subject_id)
    return ApiResponse.ok(
        [CardResponse.from_model(card) for card in cards], "Cards fetched for user."
    )
