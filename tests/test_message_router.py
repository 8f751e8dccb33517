"""
Tests for the message router and connection registry.

Connections are stand-ins that record the frames pushed to them, so routing
can be checked without a socket.
"""

from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from conftest import make_token
from tradepost.db.operations import create_user, get_user
from tradepost.models.failure import AuthenticationFailure, InvalidArgument, NotFound
from tradepost.models.user import AuthenticatedIdentity
from tradepost.services.identity import JwtIdentityVerifier
from tradepost.services.message_router import (
    MAX_MESSAGE_LENGTH,
    ConnectionRegistry,
    MessageRouter,
    private_destination,
)

ALICE = AuthenticatedIdentity(subject_id="user_a", username="alice")
BOB = AuthenticatedIdentity(subject_id="user_b", username="bob")


class FakeConnection:
    """Records every frame sent to it."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []

    async def send_json(self, data: Any, mode: str = "text") -> None:
        self.frames.append(data)


class DeadConnection:
    """A connection whose peer has gone away."""

    async def send_json(self, data: Any, mode: str = "text") -> None:
        raise RuntimeError("socket closed")


@pytest.fixture
async def router(
    verifier: JwtIdentityVerifier,
    registry: ConnectionRegistry,
    session_factory: async_sessionmaker[AsyncSession],
) -> MessageRouter:
    """A router over a directory that already knows alice and bob."""
    async with session_factory() as session, session.begin():
        await create_user(session, ALICE.subject_id, ALICE.username)
        await create_user(session, BOB.subject_id, BOB.username)
    return MessageRouter(verifier, registry, session_factory)


class TestConnectionRegistry:
    async def test_bind_and_unbind(self, registry: ConnectionRegistry) -> None:
        connection = FakeConnection()

        await registry.bind("user_a", connection)
        assert await registry.connections_for("user_a") == [connection]
        assert await registry.online_count() == 1

        await registry.unbind("user_a", connection)
        assert await registry.connections_for("user_a") == []
        assert await registry.online_count() == 0

    async def test_unbind_unknown_is_noop(self, registry: ConnectionRegistry) -> None:
        await registry.unbind("user_a", FakeConnection())

        assert await registry.online_count() == 0

    async def test_send_reaches_every_connection(self, registry: ConnectionRegistry) -> None:
        """A user with several devices receives the frame on each."""
        phone, laptop = FakeConnection(), FakeConnection()
        await registry.bind("user_a", phone)
        await registry.bind("user_a", laptop)

        delivered = await registry.send("user_a", {"type": "ping"})

        assert delivered == 2
        assert phone.frames == [{"type": "ping"}]
        assert laptop.frames == [{"type": "ping"}]

    async def test_send_to_offline_user(self, registry: ConnectionRegistry) -> None:
        assert await registry.send("user_a", {"type": "ping"}) == 0

    async def test_dead_connection_dropped(self, registry: ConnectionRegistry) -> None:
        live = FakeConnection()
        await registry.bind("user_a", live)
        await registry.bind("user_a", DeadConnection())

        delivered = await registry.send("user_a", {"type": "ping"})

        assert delivered == 1
        assert len(await registry.connections_for("user_a")) == 1


class TestAuthenticateConnection:
    async def test_valid_credential_registers_user(
        self, router: MessageRouter, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """First contact over a socket adds the user to the directory."""
        identity = await router.authenticate_connection(f"Bearer {make_token('user_c', 'carol')}")

        assert identity == AuthenticatedIdentity(subject_id="user_c", username="carol")
        async with session_factory() as session:
            assert await get_user(session, "user_c") is not None

    @pytest.mark.parametrize("credential", [None, "", "Bearer nonsense", "Basic abc"])
    async def test_invalid_credential_refused(
        self, router: MessageRouter, credential: str | None
    ) -> None:
        with pytest.raises(AuthenticationFailure):
            await router.authenticate_connection(credential)

    async def test_expired_credential_refused(self, router: MessageRouter) -> None:
        token = make_token("user_a", "alice", expires_in=-3600)

        with pytest.raises(AuthenticationFailure):
            await router.authenticate_connection(f"Bearer {token}")


class TestSendDirectMessage:
    async def test_offline_recipient_stores_message(self, router: MessageRouter) -> None:
        """Sending to an offline user succeeds and the message waits in history."""
        outcome = await router.send_direct_message(ALICE, BOB.subject_id, "hi")

        assert not outcome.delivered
        assert outcome.message.sender_subject_id == ALICE.subject_id
        assert outcome.message.recipient_username == BOB.username

        history = await router.get_conversation_history(BOB.subject_id, ALICE.subject_id)
        assert [message.content for message in history] == ["hi"]

    async def test_online_recipient_receives_frame(self, router: MessageRouter) -> None:
        connection = FakeConnection()
        await router.connect(BOB, connection)

        outcome = await router.send_direct_message(ALICE, BOB.subject_id, "hi")

        assert outcome.delivered
        [frame] = connection.frames
        assert frame["type"] == "message"
        assert frame["destination"] == private_destination(BOB.subject_id)
        assert frame["message"]["senderId"] == ALICE.subject_id
        assert frame["message"]["senderUsername"] == ALICE.username
        assert frame["message"]["content"] == "hi"

    async def test_sender_does_not_receive_own_frame(self, router: MessageRouter) -> None:
        alice_connection = FakeConnection()
        await router.connect(ALICE, alice_connection)

        await router.send_direct_message(ALICE, BOB.subject_id, "hi")

        assert alice_connection.frames == []

    async def test_disconnected_recipient_not_delivered(self, router: MessageRouter) -> None:
        connection = FakeConnection()
        await router.connect(BOB, connection)
        await router.disconnect(BOB, connection)

        outcome = await router.send_direct_message(ALICE, BOB.subject_id, "hi")

        assert not outcome.delivered
        assert connection.frames == []

    async def test_unknown_recipient(self, router: MessageRouter) -> None:
        with pytest.raises(NotFound):
            await router.send_direct_message(ALICE, "user_ghost", "hi")

    @pytest.mark.parametrize("content", ["", "   ", "x" * (MAX_MESSAGE_LENGTH + 1)])
    async def test_invalid_content(self, router: MessageRouter, content: str) -> None:
        with pytest.raises(InvalidArgument):
            await router.send_direct_message(ALICE, BOB.subject_id, content)

    async def test_conversation_history_in_send_order(self, router: MessageRouter) -> None:
        await router.send_direct_message(ALICE, BOB.subject_id, "1")
        await router.send_direct_message(BOB, ALICE.subject_id, "2")
        await router.send_direct_message(ALICE, BOB.subject_id, "3")

        history = await router.get_conversation_history(ALICE.subject_id, BOB.subject_id)

        assert [message.content for message in history] == ["1", "2", "3"]
        assert [message.sender_subject_id for message in history] == [
            "user_a",
            "user_b",
            "user_a",
        ]
