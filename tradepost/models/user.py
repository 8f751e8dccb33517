from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class User:
    """
    A directory entry for a user known to the service.

    Attributes:
        id: Internal numeric identifier
        subject_id: Stable identifier issued by the identity provider
        username: Display name captured when the entry was created
    """

    id: int
    subject_id: str
    username: str


@dataclass(frozen=True, slots=True)
class AuthenticatedIdentity:
    """Identity established by verifying a bearer credential."""

    subject_id: str
    username: str

    def __post_init__(self) -> None:
        if not self.subject_id:
            raise ValueError("subject_id is required")
        if not self.username:
            raise ValueError("username is required")
