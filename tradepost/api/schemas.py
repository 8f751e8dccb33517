"""
Response DTOs shared across API routers.

JSON keys are camelCase; requests accept either camelCase or snake_case.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from tradepost.models.card import Card, CardStatus
from tradepost.models.message import ChatMessage
from tradepost.models.user import User


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CardResponse(CamelModel):
    """A card as seen by API clients."""

    id: int
    name: str
    card_id: str
    owner_id: str
    username: str
    status: CardStatus
    price: Decimal | None = None

    @field_serializer("price")
    def _serialize_price(self, price: Decimal | None) -> float | None:
        return float(price) if price is not None else None

    @classmethod
    def from_model(cls, card: Card) -> "CardResponse":
        return cls(
            id=card.id,
            name=card.display_name,
            card_id=card.external_card_id,
            owner_id=card.owner_subject_id,
            username=card.owner_username,
            status=card.status,
            price=card.price,
        )


class UserResponse(CamelModel):
    """A user directory entry."""

    username: str
    subject_id: str

    @classmethod
    def from_model(cls, user: User) -> "UserResponse":
        return cls(username=user.username, subject_id=user.subject_id)


class MessageResponse(CamelModel):
    """A persisted direct message."""

    id: int
    sender_id: str
    recipient_id: str
    sender_username: str
    recipient_username: str
    content: str
    timestamp: datetime

    @classmethod
    def from_model(cls, message: ChatMessage) -> "MessageResponse":
        return cls(
            id=message.id,
            sender_id=message.sender_subject_id,
            recipient_id=message.recipient_subject_id,
            sender_username=message.sender_username,
            recipient_username=message.recipient_username,
            content=message.content,
            timestamp=message.timestamp,
        )
