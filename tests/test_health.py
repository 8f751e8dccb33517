"""Smoke test for application startup."""


def test_app_imports() -> None:
    """Verify the app can be imported without errors."""
    from tradepost.main import app

    assert app.title == "TradePost"


def test_versioned_routes_mounted() -> None:
    """REST routes live under the versioned prefix; probes and the socket do not."""
    from tradepost.main import app

    assert app.url_path_for("add_card") == "/api/v1/collection"
    assert app.url_path_for("list_card", card_id=7) == "/api/v1/marketplace/list/7"
    assert app.url_path_for("get_chat_partners") == "/api/v1/users/chat-partners"
    assert (
        app.url_path_for("get_chat_history", recipient_id="user_b")
        == "/api/v1/chat/history/user_b"
    )
    assert app.url_path_for("chat_socket") == "/ws"
    assert app.url_path_for("health") == "/health"
    assert app.url_path_for("ready") == "/ready"
