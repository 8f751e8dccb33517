"""
Chat endpoints.

- ``GET /chat/history/{recipient_id}``: persisted conversation with a user
- ``WS /ws``: realtime direct messaging

Realtime protocol (JSON text frames):

    client → {"type": "connect", "authorization": "Bearer <token>"}
    server → {"type": "connected", "subjectId": ..., "username": ...}
    client → {"type": "message", "recipientId": ..., "content": ...}
    server → {"type": "sent", "message": {...}, "delivered": bool}       (to sender)
    server → {"type": "message", "destination": "/user/<id>/private",
              "message": {...}}                                          (to recipient)
    server → {"type": "error", "kind": ..., "message": ...}

The first frame must be the connect frame. If it is anything else, or the
credential does not verify, the socket is closed with code 4001. A storage
failure during the handshake sends a transient_failure error frame and closes
with 1011. Binary frames on an open connection get an error frame.
"""

import json
import logging
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.api.dependencies import CurrentIdentity, get_message_router
from tradepost.api.schemas import CamelModel, MessageResponse
from tradepost.config import WS_AUTHENTICATION_FAILED
from tradepost.db.database import get_session
from tradepost.models.failure import (
    ApiResponse,
    AuthenticationFailure,
    FailureKind,
    KnownError,
)
from tradepost.models.user import AuthenticatedIdentity
from tradepost.services.message_router import (
    MessageRouter,
    get_conversation_history,
    message_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])
socket_router = APIRouter(tags=["chat"])


class ConnectFrame(CamelModel):
    """First frame on a new socket; carries the bearer credential."""

    type: Literal["connect"]
    authorization: str | None = None


class MessageFrame(CamelModel):
    """
    A direct message sent by a connected client.

    Any sender fields in the payload are dropped; the sender is always the
    connection's authenticated identity.
    """

    type: Literal["message"]
    recipient_id: str = Field(..., min_length=1, max_length=255)
    content: str


@router.get("/history/{recipient_id}", response_model=ApiResponse[list[MessageResponse]])
async def get_chat_history(
    recipient_id: str,
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ApiResponse[list[MessageResponse]]:
    """Get the caller's conversation with another user, oldest first."""
    history = await get_conversation_history(session, identity.subject_id, recipient_id)
    return ApiResponse.ok(
        [MessageResponse.from_model(message) for message in history],
        "Chat history fetched successfully.",
    )


def _error_frame(kind: FailureKind, message: str) -> dict[str, Any]:
    return {"type": "error", "kind": kind.value, "message": message}


async def _receive_text(websocket: WebSocket) -> str | None:
    """Next text frame, or None when the peer sent a binary frame."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    return message.get("text")


async def _read_credential(websocket: WebSocket) -> str | None:
    """
    Read the connect frame and return the credential it carries.

    Falls back to the upgrade request's Authorization header when the frame
    has none.
    """
    raw = await _receive_text(websocket)
    if raw is None:
        raise AuthenticationFailure("First frame must be a connect frame.")
    try:
        frame = ConnectFrame.model_validate_json(raw)
    except ValidationError as e:
        raise AuthenticationFailure("First frame must be a connect frame.") from e
    return frame.authorization or websocket.headers.get("authorization")


async def _handle_frame(
    message_router: MessageRouter,
    websocket: WebSocket,
    identity: AuthenticatedIdentity,
    raw: str,
) -> None:
    try:
        frame_type = json.loads(raw).get("type")
    except (json.JSONDecodeError, AttributeError):
        await websocket.send_json(_error_frame(FailureKind.INVALID_ARGUMENT, "Malformed frame."))
        return

    if frame_type == "connect":
        # No re-authentication within a connection's lifetime
        await websocket.send_json(
            _error_frame(FailureKind.INVALID_ARGUMENT, "Connection is already authenticated.")
        )
        return
    if frame_type != "message":
        await websocket.send_json(
            _error_frame(FailureKind.INVALID_ARGUMENT, f"Unsupported frame type: {frame_type}")
        )
        return

    try:
        frame = MessageFrame.model_validate_json(raw)
    except ValidationError:
        await websocket.send_json(
            _error_frame(FailureKind.INVALID_ARGUMENT, "Message frame is missing fields.")
        )
        return

    try:
        outcome = await message_router.send_direct_message(
            identity, frame.recipient_id, frame.content
        )
    except KnownError as e:
        await websocket.send_json(_error_frame(e.kind, e.message))
        return
    except SQLAlchemyError:
        logger.exception("Storage failure routing message from %s", identity.subject_id)
        await websocket.send_json(
            _error_frame(FailureKind.TRANSIENT_FAILURE, "Message could not be stored.")
        )
        return

    await websocket.send_json(
        {
            "type": "sent",
            "message": message_payload(outcome.message),
            "delivered": outcome.delivered,
        }
    )


@socket_router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    message_router: Annotated[MessageRouter, Depends(get_message_router)],
) -> None:
    """Realtime direct messaging for one authenticated connection."""
    await websocket.accept()

    try:
        identity = await message_router.authenticate_connection(await _read_credential(websocket))
    except AuthenticationFailure as e:
        logger.warning("Refused WebSocket connection: %s", e.message)
        await websocket.close(code=WS_AUTHENTICATION_FAILED, reason=e.message)
        return
    except SQLAlchemyError:
        logger.exception("Storage failure while authenticating WebSocket connection")
        await websocket.send_json(
            _error_frame(FailureKind.TRANSIENT_FAILURE, "Connection could not be established.")
        )
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    except WebSocketDisconnect:
        return

    await message_router.connect(identity, websocket)
    try:
        await websocket.send_json(
            {"type": "connected", "subjectId": identity.subject_id, "username": identity.username}
        )
        while True:
            raw = await _receive_text(websocket)
            if raw is None:
                await websocket.send_json(
                    _error_frame(FailureKind.INVALID_ARGUMENT, "Frames must be JSON text.")
                )
                continue
            await _handle_frame(message_router, websocket, identity, raw)
    except WebSocketDisconnect:
        logger.info("WebSocket closed for %s", identity.subject_id)
    finally:
        await message_router.disconnect(identity, websocket)
