from tradepost.api.chat import router as chat_router
from tradepost.api.chat import socket_router as chat_socket_router
from tradepost.api.collection import router as collection_router
from tradepost.api.health import router as health_router
from tradepost.api.marketplace import router as marketplace_router
from tradepost.api.users import router as users_router

__all__ = [
    "chat_router",
    "chat_socket_router",
    "collection_router",
    "health_router",
    "marketplace_router",
    "users_router",
]
