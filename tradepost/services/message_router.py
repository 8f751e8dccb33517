"""
Message Router — authenticated direct messaging over long-lived connections.

Connection lifecycle:

    UNAUTHENTICATED --connect frame, valid credential--> AUTHENTICATED
    UNAUTHENTICATED --anything else-----------------> closed

The credential is verified exactly once, when the connection is opened. The
identity is then bound to the connection for its whole lifetime.

INVARIANTS:
- A message is always stamped with the connection's authenticated identity;
  any sender the client claims in the payload is ignored.
- Persistence happens before delivery. A stored message is the durability
  guarantee; live delivery is best effort.
- An offline recipient is not an error. The message waits in history.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Mapping
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tradepost.db.operations import (
    create_message,
    find_or_create_user,
    get_conversation,
    get_user,
    message_to_model,
)
from tradepost.models.failure import InvalidArgument, NotFound
from tradepost.models.message import ChatMessage, DeliveryOutcome
from tradepost.models.user import AuthenticatedIdentity
from tradepost.services.identity import IdentityVerifier, parse_bearer

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000


def private_destination(subject_id: str) -> str:
    """Per-recipient destination that inbound messages are addressed to."""
    return f"/user/{subject_id}/private"


def message_payload(message: ChatMessage) -> dict[str, Any]:
    """JSON-safe representation of a message for realtime frames."""
    return {
        "id": message.id,
        "senderId": message.sender_subject_id,
        "recipientId": message.recipient_subject_id,
        "senderUsername": message.sender_username,
        "recipientUsername": message.recipient_username,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
    }


class Connection(Protocol):
    """The part of a WebSocket the router needs."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...


class ConnectionRegistry:
    """
    Live connections by subject identifier.

    This is per-process transport state, not persistence. A user may hold
    several connections at once (one per device).
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[Connection]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def bind(self, subject_id: str, connection: Connection) -> None:
        async with self._lock:
            self._connections[subject_id].add(connection)

    async def unbind(self, subject_id: str, connection: Connection) -> None:
        async with self._lock:
            connections = self._connections.get(subject_id)
            if connections is None:
                return
            connections.discard(connection)
            if not connections:
                del self._connections[subject_id]

    async def connections_for(self, subject_id: str) -> list[Connection]:
        async with self._lock:
            return list(self._connections.get(subject_id, ()))

    async def online_count(self) -> int:
        """Number of distinct users with at least one live connection."""
        async with self._lock:
            return len(self._connections)

    async def send(self, subject_id: str, payload: Mapping[str, Any]) -> int:
        """
        Push a payload to every connection bound to a subject.

        Connections that fail to accept the frame are dropped from the
        registry. Returns the number of connections that received it.
        """
        delivered = 0
        for connection in await self.connections_for(subject_id):
            try:
                await connection.send_json(dict(payload))
            except Exception as e:
                logger.warning(
                    "Dropping dead connection for %s: %s", subject_id, type(e).__name__
                )
                await self.unbind(subject_id, connection)
            else:
                delivered += 1
        return delivered


class MessageRouter:
    """
    Authenticates connections and routes direct messages between users.

    Each operation runs in its own short unit of work from ``session_factory``;
    connections outlive any single database session.
    """

    def __init__(
        self,
        verifier: IdentityVerifier,
        registry: ConnectionRegistry,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self._verifier = verifier
        self._registry = registry
        self._session_factory = session_factory

    async def authenticate_connection(self, credential: str | None) -> AuthenticatedIdentity:
        """
        Verify a connection's credential and register the user on first contact.

        Raises:
            AuthenticationFailure: If the credential is missing, malformed or invalid
        """
        identity = await self._verifier.verify(parse_bearer(credential))

        async with self._session_factory() as session, session.begin():
            _, created = await find_or_create_user(
                session, identity.subject_id, identity.username
            )
        if created:
            logger.info("Registered new user %s on first connection", identity.subject_id)

        logger.info("Authenticated connection for %s", identity.subject_id)
        return identity

    async def connect(self, identity: AuthenticatedIdentity, connection: Connection) -> None:
        await self._registry.bind(identity.subject_id, connection)

    async def disconnect(self, identity: AuthenticatedIdentity, connection: Connection) -> None:
        await self._registry.unbind(identity.subject_id, connection)

    async def send_direct_message(
        self,
        sender: AuthenticatedIdentity,
        recipient_id: str,
        content: str,
    ) -> DeliveryOutcome:
        """
        Persist a message from ``sender`` and forward it to the recipient.

        Raises:
            InvalidArgument: If the content is blank or too long
            NotFound: If the recipient is not in the user directory
        """
        if not content or not content.strip():
            raise InvalidArgument("Message content cannot be empty.")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise InvalidArgument(
                f"Message content cannot exceed {MAX_MESSAGE_LENGTH} characters."
            )

        async with self._session_factory() as session, session.begin():
            recipient = await get_user(session, recipient_id)
            if recipient is None:
                raise NotFound(f"User not found with id: {recipient_id}")
            db_message = await create_message(
                session,
                sender_subject_id=sender.subject_id,
                recipient_subject_id=recipient.subject_id,
                sender_username=sender.username,
                recipient_username=recipient.username,
                content=content,
            )
        message = message_to_model(db_message)

        delivered_to = await self._registry.send(
            recipient.subject_id,
            {
                "type": "message",
                "destination": private_destination(recipient.subject_id),
                "message": message_payload(message),
            },
        )
        logger.info(
            "Routed message %d from %s to %s (delivered to %d connections)",
            message.id,
            sender.subject_id,
            recipient.subject_id,
            delivered_to,
        )
        return DeliveryOutcome(message=message, delivered_to=delivered_to)

    async def get_conversation_history(
        self, caller_id: str, other_party_id: str
    ) -> list[ChatMessage]:
        """All messages between two users, oldest first."""
        async with self._session_factory() as session:
            return await get_conversation_history(session, caller_id, other_party_id)


async def get_conversation_history(
    session: AsyncSession, caller_id: str, other_party_id: str
) -> list[ChatMessage]:
    """All messages between two users in either direction, oldest first."""
    return [
        message_to_model(message)
        for message in await get_conversation(session, caller_id, other_party_id)
    ]
