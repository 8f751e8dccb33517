"""
Identity Verifier — bearer credential validation.

Tokens are issued and signed by an external identity provider. This module
only verifies them and extracts the subject identifier and a display name.

Verification modes:
- JWKS: RS256 tokens checked against the issuer's published signing keys
- Shared secret: HS256 tokens, for local development and tests

INVARIANTS:
- Any failure (missing header, bad scheme, bad signature, expired token,
  missing subject) raises AuthenticationFailure. There is no anonymous identity.
- Tokens are never logged.
"""

import asyncio
import logging
from typing import Any, Protocol

import jwt

from tradepost.config import Settings
from tradepost.models.failure import AuthenticationFailure
from tradepost.models.user import AuthenticatedIdentity

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "

# Claims tried in order when deriving a display name
USERNAME_CLAIMS = ("username", "preferred_username", "name", "email")


class IdentityVerifier(Protocol):
    """Anything that can turn a raw bearer token into an identity."""

    async def verify(self, token: str) -> AuthenticatedIdentity: ...


def parse_bearer(authorization: str | None) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` value.

    Raises:
        AuthenticationFailure: If the value is missing or not a bearer credential
    """
    if not authorization:
        raise AuthenticationFailure("Missing bearer credential.")
    if not authorization.lower().startswith(BEARER_PREFIX):
        raise AuthenticationFailure("Authorization must use the Bearer scheme.")
    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise AuthenticationFailure("Bearer credential is empty.")
    return token


def username_from_claims(claims: dict[str, Any]) -> str:
    """Derive a display name from token claims, falling back to the subject."""
    for claim in USERNAME_CLAIMS:
        value = claims.get(claim)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return str(claims["sub"])


class JwtIdentityVerifier:
    """
    Verifies JSON Web Tokens issued by the identity provider.

    Exactly one key source is used: the shared secret when configured,
    otherwise the JWKS endpoint.
    """

    def __init__(
        self,
        *,
        issuer: str | None = None,
        jwks_url: str | None = None,
        audience: str | None = None,
        shared_secret: str | None = None,
        leeway_seconds: int = 0,
    ):
        self._issuer = issuer or None
        self._audience = audience or None
        self._shared_secret = shared_secret or None
        self._leeway = leeway_seconds
        self._jwks_client: jwt.PyJWKClient | None = None
        if not self._shared_secret and jwks_url:
            self._jwks_client = jwt.PyJWKClient(jwks_url)

    @property
    def configured(self) -> bool:
        return self._shared_secret is not None or self._jwks_client is not None

    async def _signing_key(self, token: str) -> tuple[Any, list[str]]:
        if self._shared_secret is not None:
            return self._shared_secret, ["HS256"]
        if self._jwks_client is None:
            logger.error("No identity provider configured; refusing all credentials")
            raise AuthenticationFailure("Identity provider is not configured.")
        # PyJWKClient fetches keys over blocking HTTP; keep it off the event loop
        signing_key = await asyncio.to_thread(self._jwks_client.get_signing_key_from_jwt, token)
        return signing_key.key, ["RS256"]

    async def verify(self, token: str) -> AuthenticatedIdentity:
        """
        Verify a raw token and return the identity it asserts.

        Raises:
            AuthenticationFailure: If the token cannot be verified
        """
        try:
            key, algorithms = await self._signing_key(token)
            claims = jwt.decode(
                token,
                key,
                algorithms=algorithms,
                audience=self._audience,
                issuer=self._issuer,
                leeway=self._leeway,
                options={
                    "require": ["sub", "exp"],
                    "verify_aud": self._audience is not None,
                },
            )
        except jwt.PyJWTError as e:
            logger.info("Rejected bearer credential: %s", type(e).__name__)
            raise AuthenticationFailure(
                "Invalid or expired credential.", detail=type(e).__name__
            ) from e

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationFailure("Credential has no subject.")

        return AuthenticatedIdentity(subject_id=subject, username=username_from_claims(claims))


def build_identity_verifier(settings: Settings) -> JwtIdentityVerifier:
    """Create the verifier described by the application settings."""
    verifier = JwtIdentityVerifier(
        issuer=settings.auth_issuer,
        jwks_url=settings.resolved_jwks_url(),
        audience=settings.auth_audience,
        shared_secret=settings.auth_shared_secret,
        leeway_seconds=settings.auth_leeway_seconds,
    )
    if not verifier.configured:
        logger.warning("AUTH_ISSUER and AUTH_SHARED_SECRET are both unset")
    return verifier
