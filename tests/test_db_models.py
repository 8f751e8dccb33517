"""Tests for SQLAlchemy ORM models."""

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.models.card import CardStatus
from tradepost.models.db import CardDB, MessageDB, UserDB


@pytest.fixture
async def owner(session: AsyncSession) -> UserDB:
    user = UserDB(subject_id="user_a", username="alice")
    session.add(user)
    await session.commit()
    return user


class TestUserDB:
    async def test_create_user(self, session: AsyncSession) -> None:
        """Can create a directory entry."""
        user = UserDB(subject_id="user_a", username="alice")
        session.add(user)
        await session.commit()

        assert user.id is not None
        assert user.created_at is not None

    async def test_subject_id_is_unique(self, session: AsyncSession, owner: UserDB) -> None:
        """A subject identifier appears in the directory at most once."""
        session.add(UserDB(subject_id="user_a", username="someone-else"))

        with pytest.raises(IntegrityError):
            await session.commit()


class TestCardDB:
    async def test_new_card_defaults_to_collection(
        self, session: AsyncSession, owner: UserDB
    ) -> None:
        card = CardDB(
            owner_subject_id="user_a", display_name="Pikachu", external_card_id="base1-58"
        )
        session.add(card)
        await session.commit()

        result = await session.execute(select(CardDB).where(CardDB.id == card.id))
        stored = result.scalar_one()
        assert stored.status == CardStatus.IN_COLLECTION
        assert stored.price is None

    async def test_listed_card_stores_price(self, session: AsyncSession, owner: UserDB) -> None:
        card = CardDB(
            owner_subject_id="user_a",
            display_name="Pikachu",
            external_card_id="base1-58",
            status=CardStatus.FOR_SALE,
            price=Decimal("10.00"),
        )
        session.add(card)
        await session.commit()

        assert card.price == Decimal("10.00")

    async def test_collection_card_with_price_rejected(
        self, session: AsyncSession, owner: UserDB
    ) -> None:
        """The store refuses a priced card that is not listed or sold."""
        session.add(
            CardDB(
                owner_subject_id="user_a",
                display_name="Pikachu",
                external_card_id="base1-58",
                status=CardStatus.IN_COLLECTION,
                price=Decimal("10.00"),
            )
        )

        with pytest.raises(IntegrityError):
            await session.commit()

    async def test_listed_card_without_price_rejected(
        self, session: AsyncSession, owner: UserDB
    ) -> None:
        session.add(
            CardDB(
                owner_subject_id="user_a",
                display_name="Pikachu",
                external_card_id="base1-58",
                status=CardStatus.FOR_SALE,
                price=None,
            )
        )

        with pytest.raises(IntegrityError):
            await session.commit()

    async def test_non_positive_price_rejected(self, session: AsyncSession, owner: UserDB) -> None:
        session.add(
            CardDB(
                owner_subject_id="user_a",
                display_name="Pikachu",
                external_card_id="base1-58",
                status=CardStatus.FOR_SALE,
                price=Decimal("0"),
            )
        )

        with pytest.raises(IntegrityError):
            await session.commit()


class TestMessageDB:
    async def test_timestamp_assigned_on_flush(self, session: AsyncSession) -> None:
        """The server stamps each message; clients never supply a time."""
        message = MessageDB(
            sender_subject_id="user_a",
            recipient_subject_id="user_b",
            sender_username="alice",
            recipient_username="bob",
            content="hello",
        )
        session.add(message)
        await session.flush()

        assert message.id is not None
        assert message.timestamp is not None
