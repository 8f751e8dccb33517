"""
Health check endpoints.

Liveness and readiness probes; readiness checks the database and reports
how many users hold a live chat connection on this instance.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradepost.api.dependencies import get_connection_registry
from tradepost.db.database import get_session
from tradepost.services.message_router import ConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None
    online_users: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    Liveness probe.

    Returns healthy if the process is serving requests. No dependency checks.
    """
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
    registry: Annotated[ConnectionRegistry, Depends(get_connection_registry)],
) -> HealthResponse:
    """
    Readiness probe.

    Returns 503 when the database cannot be reached.
    """
    online_users = await registry.online_count()
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Readiness check failed: database unreachable")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not ready", database="disconnected", online_users=online_users
        )
    return HealthResponse(status="ready", database="connected", online_users=online_users)
