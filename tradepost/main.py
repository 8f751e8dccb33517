import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tradepost.api import (
    chat_router,
    chat_socket_router,
    collection_router,
    health_router,
    marketplace_router,
    users_router,
)
from tradepost.api.errors import register_error_handlers
from tradepost.config import settings
from tradepost.db.database import init_db
from tradepost.services.identity import build_identity_verifier
from tradepost.services.message_router import ConnectionRegistry

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging once at startup."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    configure_logging(settings.log_level)
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("tradepost"),
    lifespan=lifespan,
)

# Collaborators shared by every request, handed out by tradepost.api.dependencies
app.state.identity_verifier = build_identity_verifier(settings)
app.state.connection_registry = ConnectionRegistry()

app.include_router(chat_router, prefix=settings.api_prefix)
app.include_router(collection_router, prefix=settings.api_prefix)
app.include_router(marketplace_router, prefix=settings.api_prefix)
app.include_router(users_router, prefix=settings.api_prefix)
app.include_router(chat_socket_router)
app.include_router(health_router)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
