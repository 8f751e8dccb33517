"""Tests for domain models."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from tradepost.models.card import Card, CardStatus
from tradepost.models.message import ChatMessage, DeliveryOutcome
from tradepost.models.user import AuthenticatedIdentity


def make_card(status: CardStatus, price: Decimal | None) -> Card:
    return Card(
        id=1,
        display_name="Charizard",
        external_card_id="base1-4",
        owner_subject_id="user_a",
        owner_username="alice",
        status=status,
        price=price,
    )


class TestCard:
    def test_collection_card_has_no_price(self) -> None:
        """Cards in a collection are valid without a price."""
        card = make_card(CardStatus.IN_COLLECTION, None)

        assert card.price is None

    def test_collection_card_with_price_rejected(self) -> None:
        """A price on an IN_COLLECTION card is inconsistent."""
        with pytest.raises(ValueError, match="IN_COLLECTION"):
            make_card(CardStatus.IN_COLLECTION, Decimal("5.00"))

    def test_listed_card_requires_price(self) -> None:
        """A FOR_SALE card must carry an asking price."""
        with pytest.raises(ValueError, match="FOR_SALE"):
            make_card(CardStatus.FOR_SALE, None)

    def test_sold_card_keeps_price(self) -> None:
        """SOLD cards retain the last asking price."""
        card = make_card(CardStatus.SOLD, Decimal("12.50"))

        assert card.price == Decimal("12.50")

    def test_is_owned_by(self) -> None:
        """Ownership compares subject identifiers."""
        card = make_card(CardStatus.IN_COLLECTION, None)

        assert card.is_owned_by("user_a")
        assert not card.is_owned_by("user_b")

    def test_card_is_immutable(self) -> None:
        """Domain cards are frozen snapshots."""
        card = make_card(CardStatus.IN_COLLECTION, None)

        with pytest.raises(AttributeError):
            card.status = CardStatus.SOLD  # type: ignore[misc]

    def test_status_values_match_wire_names(self) -> None:
        """Status values are the names clients see."""
        assert [status.value for status in CardStatus] == ["IN_COLLECTION", "FOR_SALE", "SOLD"]


class TestAuthenticatedIdentity:
    def test_valid_identity(self) -> None:
        identity = AuthenticatedIdentity(subject_id="user_a", username="alice")

        assert identity.subject_id == "user_a"
        assert identity.username == "alice"

    @pytest.mark.parametrize(("subject_id", "username"), [("", "alice"), ("user_a", "")])
    def test_blank_fields_rejected(self, subject_id: str, username: str) -> None:
        """An identity always names a subject and a username."""
        with pytest.raises(ValueError):
            AuthenticatedIdentity(subject_id=subject_id, username=username)


class TestDeliveryOutcome:
    def _message(self) -> ChatMessage:
        return ChatMessage(
            id=1,
            sender_subject_id="user_a",
            recipient_subject_id="user_b",
            sender_username="alice",
            recipient_username="bob",
            content="hi",
            timestamp=datetime(2026, 1, 1, tzinfo=UTC),
        )

    def test_offline_recipient_not_delivered(self) -> None:
        """No live connections means not delivered, but still a success."""
        outcome = DeliveryOutcome(message=self._message())

        assert outcome.delivered_to == 0
        assert not outcome.delivered

    def test_delivered_to_connections(self) -> None:
        outcome = DeliveryOutcome(message=self._message(), delivered_to=2)

        assert outcome.delivered
