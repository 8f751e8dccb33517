"""
Card Ledger — adding cards to collections and reading them back.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.db.operations import (
    card_to_model,
    cards_to_models,
    create_card,
    find_or_create_user,
    get_cards_by_owner,
)
from tradepost.models.card import Card
from tradepost.models.failure import InvalidArgument

logger = logging.getLogger(__name__)


async def add_card_to_collection(
    session: AsyncSession,
    owner_subject_id: str,
    username: str,
    display_name: str,
    external_card_id: str,
) -> Card:
    """
    Add a card to a user's collection.

    The owner is found or created in the user directory first, so a user's
    first card also registers them.

    Raises:
        InvalidArgument: If the card name or catalog id is blank
    """
    display_name = display_name.strip()
    external_card_id = external_card_id.strip()
    if not display_name:
        raise InvalidArgument("Card name cannot be empty.")
    if not external_card_id:
        raise InvalidArgument("Card catalog id cannot be empty.")

    owner, _ = await find_or_create_user(session, owner_subject_id, username)
    db_card = await create_card(session, owner.subject_id, display_name, external_card_id)
    logger.info("Added card %d (%s) to %s", db_card.id, external_card_id, owner.subject_id)
    return card_to_model(db_card, owner.username)


async def get_collection(session: AsyncSession, owner_subject_id: str) -> list[Card]:
    """All cards owned by a user, in every status."""
    return await cards_to_models(session, await get_cards_by_owner(session, owner_subject_id))
