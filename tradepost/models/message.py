from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """
    A persisted direct message.

    Usernames are snapshots taken at send time and do not follow later
    username changes.
    """

    id: int
    sender_subject_id: str
    recipient_subject_id: str
    sender_username: str
    recipient_username: str
    content: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """
    Result of routing a direct message.

    The message is durable regardless of live delivery; ``delivered_to`` counts
    the recipient connections that received it (0 when the recipient is offline).
    """

    message: ChatMessage
    delivered_to: int = 0

    @property
    def delivered(self) -> bool:
        return self.delivered_to > 0
