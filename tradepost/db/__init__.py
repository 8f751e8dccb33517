from tradepost.db.database import get_session, get_session_factory, init_db
from tradepost.db.operations import (
    card_to_model,
    cards_to_models,
    create_card,
    create_message,
    create_user,
    find_or_create_user,
    get_card,
    get_cards_by_owner,
    get_cards_by_status,
    get_conversation,
    get_user,
    get_usernames,
    list_other_users,
    list_users_with_history,
    message_to_model,
    user_to_model,
)

__all__ = [
    "card_to_model",
    "cards_to_models",
    "create_card",
    "create_message",
    "create_user",
    "find_or_create_user",
    "get_card",
    "get_cards_by_owner",
    "get_cards_by_status",
    "get_conversation",
    "get_session",
    "get_session_factory",
    "get_user",
    "get_usernames",
    "init_db",
    "list_other_users",
    "list_users_with_history",
    "message_to_model",
    "user_to_model",
]
