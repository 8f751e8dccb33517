from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "TradePost"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "postgresql+asyncpg://localhost:5432/tradepost"

    # REST routes are mounted under this prefix; health probes and /ws are not
    api_prefix: str = "/api/v1"

    cors_allowed_origins: list[str] = ["*"]

    # Identity provider. Tokens are verified against the issuer's JWKS unless
    # a shared secret is configured (HS256, local development only).
    auth_issuer: str = ""
    auth_jwks_url: str = ""
    auth_audience: str | None = None
    auth_shared_secret: str = ""
    auth_leeway_seconds: int = 30

    def resolved_jwks_url(self) -> str:
        """JWKS endpoint, derived from the issuer when not set explicitly."""
        if self.auth_jwks_url:
            return self.auth_jwks_url
        if self.auth_issuer:
            return self.auth_issuer.rstrip("/") + "/.well-known/jwks.json"
        return ""


settings = Settings()


# =============================================================================
# MARKETPLACE LIMITS
# =============================================================================

# Prices are stored as Numeric(10, 2)
PRICE_QUANTUM = Decimal("0.01")
MAX_LISTING_PRICE = Decimal("99999999.99")

# Close code sent when a WebSocket fails its connect handshake
WS_AUTHENTICATION_FAILED = 4001
