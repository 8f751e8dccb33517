"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence. Cards refer
to their owner through an explicit ``owner_subject_id`` foreign key; there are
no lazy relationships between entities.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tradepost.models.card import CardStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class UserDB(Base):
    """
    A user directory entry.

    Created on first authenticated contact; subject_id is unique and immutable.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subject_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<UserDB(id={self.id}, subject_id={self.subject_id})>"


class CardDB(Base):
    """
    A single card instance in the ledger.

    The check constraint mirrors the price invariant: a card in a collection
    has no price, a listed or sold card always has one.
    """

    __tablename__ = "cards"
    __table_args__ = (
        CheckConstraint(
            "(status = 'IN_COLLECTION' AND price IS NULL) "
            "OR (status <> 'IN_COLLECTION' AND price IS NOT NULL)",
            name="ck_card_price_matches_status",
        ),
        CheckConstraint("price IS NULL OR price > 0", name="ck_card_price_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    display_name: Mapped[str] = mapped_column(String(255))
    external_card_id: Mapped[str] = mapped_column(String(255), index=True)
    owner_subject_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.subject_id"), index=True
    )
    status: Mapped[CardStatus] = mapped_column(
        Enum(CardStatus, native_enum=False, length=20, name="card_status"),
        default=CardStatus.IN_COLLECTION,
        index=True,
    )
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, status={self.status}, owner={self.owner_subject_id})>"


class MessageDB(Base):
    """
    A direct message between two users.

    The timestamp is assigned by the server when the row is flushed.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_pair", "sender_subject_id", "recipient_subject_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_subject_id: Mapped[str] = mapped_column(String(255), index=True)
    recipient_subject_id: Mapped[str] = mapped_column(String(255), index=True)
    sender_username: Mapped[str] = mapped_column(String(255))
    recipient_username: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<MessageDB(id={self.id}, from={self.sender_subject_id}, "
            f"to={self.recipient_subject_id})>"
        )
