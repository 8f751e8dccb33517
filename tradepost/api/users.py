"""
User directory endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.api.dependencies import CurrentIdentity
from tradepost.api.schemas import UserResponse
from tradepost.db import list_other_users, list_users_with_history, user_to_model
from tradepost.db.database import get_session
from tradepost.models.failure import ApiResponse

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=ApiResponse[list[UserResponse]])
async def get_chat_users(
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ApiResponse[list[UserResponse]]:
    """Get every known user except the caller."""
    users = await list_other_users(session, identity.subject_id)
    return ApiResponse.ok(
        [UserResponse.from_model(user_to_model(user)) for user in users],
        "Users fetched successfully.",
    )


@router.get("/chat-partners", response_model=ApiResponse[list[UserResponse]])
async def get_chat_partners(
    identity: CurrentIdentity,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ApiResponse[list[UserResponse]]:
    """Get the users the caller has exchanged messages with."""
    users = await list_users_with_history(session, identity.subject_id)
    return ApiResponse.ok(
        [UserResponse.from_model(user_to_model(user)) for user in users],
        "Chat partners fetched.",
    )
