from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class CardStatus(str, Enum):
    """Sale status of a single card instance."""

    # In the owner's private collection, not for sale
    IN_COLLECTION = "IN_COLLECTION"
    # Listed on the marketplace with an asking price
    FOR_SALE = "FOR_SALE"
    # Sold; the last asking price is kept as the sale record
    SOLD = "SOLD"


@dataclass(frozen=True, slots=True)
class Card:
    """
    A card instance owned by a user.

    Attributes:
        id: Server-assigned identifier
        display_name: Card name shown to users
        external_card_id: Reference into the external card catalog
        owner_subject_id: Subject identifier of the current owner
        owner_username: Owner's username from the user directory
        status: Current sale status
        price: Asking price (FOR_SALE) or sale price (SOLD); None in collection
    """

    id: int
    display_name: str
    external_card_id: str
    owner_subject_id: str
    owner_username: str
    status: CardStatus
    price: Decimal | None = None

    def __post_init__(self) -> None:
        if self.status == CardStatus.IN_COLLECTION and self.price is not None:
            msg = f"Card {self.id} is IN_COLLECTION but has a price"
            raise ValueError(msg)
        if self.status == CardStatus.FOR_SALE and self.price is None:
            msg = f"Card {self.id} is FOR_SALE without a price"
            raise ValueError(msg)

    def is_owned_by(self, subject_id: str) -> bool:
        """Check whether the given subject currently owns this card."""
        return self.owner_subject_id == subject_id
