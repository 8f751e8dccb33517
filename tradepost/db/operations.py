"""
Database CRUD operations.

Provides async functions for the user directory, the card ledger and the
conversation store. Functions flush but never commit; the caller owns the
transaction.
"""

from datetime import UTC

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.models.card import Card, CardStatus
from tradepost.models.db import CardDB, MessageDB, UserDB
from tradepost.models.message import ChatMessage
from tradepost.models.user import User

# --- User Directory ---


async def get_user(session: AsyncSession, subject_id: str) -> UserDB | None:
    """
    Get a user by subject identifier.

    Returns None if the user is not in the directory.
    """
    result = await session.execute(select(UserDB).where(UserDB.subject_id == subject_id))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, subject_id: str, username: str) -> UserDB:
    """
    Create a new directory entry.

    Raises IntegrityError if the subject identifier is already taken.
    """
    user = UserDB(subject_id=subject_id, username=username)
    session.add(user)
    await session.flush()
    return user


async def find_or_create_user(
    session: AsyncSession, subject_id: str, username: str
) -> tuple[UserDB, bool]:
    """
    Get an existing user or create a new one.

    The insert runs inside a savepoint. If a concurrent first contact for the
    same subject wins the race, the unique constraint rejects our insert, the
    savepoint is rolled back and the winner's record is returned instead.

    Returns:
        Tuple of (user, created) where created is True if new.
    """
    user = await get_user(session, subject_id)
    if user:
        return user, False

    try:
        async with session.begin_nested():
            user = await create_user(session, subject_id, username)
    except IntegrityError:
        existing = await get_user(session, subject_id)
        if existing is None:
            raise
        return existing, False

    return user, True


async def list_other_users(session: AsyncSession, excluding_subject_id: str) -> list[UserDB]:
    """Get every known user except the given one, ordered by username."""
    result = await session.execute(
        select(UserDB)
        .where(UserDB.subject_id != excluding_subject_id)
        .order_by(UserDB.username, UserDB.id)
    )
    return list(result.scalars().all())


async def list_users_with_history(session: AsyncSession, subject_id: str) -> list[UserDB]:
    """Get users who sent a message to, or received one from, the given user."""
    sent_to = select(MessageDB.recipient_subject_id).where(
        MessageDB.sender_subject_id == subject_id
    )
    received_from = select(MessageDB.sender_subject_id).where(
        MessageDB.recipient_subject_id == subject_id
    )
    result = await session.execute(
        select(UserDB)
        .where(
            or_(UserDB.subject_id.in_(sent_to), UserDB.subject_id.in_(received_from)),
            UserDB.subject_id != subject_id,
        )
        .order_by(UserDB.username, UserDB.id)
    )
    return list(result.scalars().all())


async def get_usernames(session: AsyncSession, subject_ids: set[str]) -> dict[str, str]:
    """Look up usernames for a set of subject identifiers."""
    if not subject_ids:
        return {}
    result = await session.execute(
        select(UserDB.subject_id, UserDB.username).where(UserDB.subject_id.in_(subject_ids))
    )
    return {subject_id: username for subject_id, username in result.all()}


def user_to_model(user: UserDB) -> User:
    """Convert a database user to a domain model."""
    return User(id=user.id, subject_id=user.subject_id, username=user.username)


# --- Card Ledger ---


async def create_card(
    session: AsyncSession,
    owner_subject_id: str,
    display_name: str,
    external_card_id: str,
) -> CardDB:
    """Add a card to its owner's collection. New cards are never for sale."""
    card = CardDB(
        owner_subject_id=owner_subject_id,
        display_name=display_name,
        external_card_id=external_card_id,
        status=CardStatus.IN_COLLECTION,
        price=None,
    )
    session.add(card)
    await session.flush()
    return card


async def get_card(session: AsyncSession, card_id: int, for_update: bool = False) -> CardDB | None:
    """
    Get a card by id.

    With for_update=True the row is locked until the transaction ends, so two
    concurrent transitions on the same card are serialized.
    """
    stmt = select(CardDB).where(CardDB.id == card_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_cards_by_owner(session: AsyncSession, owner_subject_id: str) -> list[CardDB]:
    """Get all cards owned by a user, oldest first."""
    result = await session.execute(
        select(CardDB).where(CardDB.owner_subject_id == owner_subject_id).order_by(CardDB.id)
    )
    return list(result.scalars().all())


async def get_cards_by_status(session: AsyncSession, status: CardStatus) -> list[CardDB]:
    """Get all cards with the given status, oldest first."""
    result = await session.execute(
        select(CardDB).where(CardDB.status == status).order_by(CardDB.id)
    )
    return list(result.scalars().all())


def card_to_model(card: CardDB, owner_username: str) -> Card:
    """Convert a database card to a domain model."""
    return Card(
        id=card.id,
        display_name=card.display_name,
        external_card_id=card.external_card_id,
        owner_subject_id=card.owner_subject_id,
        owner_username=owner_username,
        status=card.status,
        price=card.price,
    )


async def cards_to_models(session: AsyncSession, cards: list[CardDB]) -> list[Card]:
    """Convert database cards to domain models, resolving owner usernames."""
    usernames = await get_usernames(session, {card.owner_subject_id for card in cards})
    return [
        card_to_model(card, usernames.get(card.owner_subject_id, card.owner_subject_id))
        for card in cards
    ]


# --- Conversation Store ---


async def create_message(
    session: AsyncSession,
    sender_subject_id: str,
    recipient_subject_id: str,
    sender_username: str,
    recipient_username: str,
    content: str,
) -> MessageDB:
    """Persist a direct message. The timestamp is assigned at flush time."""
    message = MessageDB(
        sender_subject_id=sender_subject_id,
        recipient_subject_id=recipient_subject_id,
        sender_username=sender_username,
        recipient_username=recipient_username,
        content=content,
    )
    session.add(message)
    await session.flush()
    return message


async def get_conversation(
    session: AsyncSession, subject_id: str, other_subject_id: str
) -> list[MessageDB]:
    """
    Get all messages exchanged between two users, oldest first.

    Messages with equal timestamps keep insertion order.
    """
    result = await session.execute(
        select(MessageDB)
        .where(
            or_(
                and_(
                    MessageDB.sender_subject_id == subject_id,
                    MessageDB.recipient_subject_id == other_subject_id,
                ),
                and_(
                    MessageDB.sender_subject_id == other_subject_id,
                    MessageDB.recipient_subject_id == subject_id,
                ),
            )
        )
        .order_by(MessageDB.timestamp, MessageDB.id)
    )
    return list(result.scalars().all())


def message_to_model(message: MessageDB) -> ChatMessage:
    """Convert a database message to a domain model."""
    timestamp = message.timestamp
    # Stored as UTC; some backends hand it back without tzinfo
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return ChatMessage(
        id=message.id,
        sender_subject_id=message.sender_subject_id,
        recipient_subject_id=message.recipient_subject_id,
        sender_username=message.sender_username,
        recipient_username=message.recipient_username,
        content=message.content,
        timestamp=timestamp,
    )
