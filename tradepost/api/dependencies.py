"""
Request-scoped collaborators.

The composition root (``tradepost.main``) places the identity verifier and the
connection registry on ``app.state``; these dependencies hand them to
endpoints. Tests replace them through ``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import HTTPConnection

from tradepost.db.database import get_session, get_session_factory
from tradepost.db.operations import find_or_create_user
from tradepost.models.failure import AuthenticationFailure, AuthorizationError
from tradepost.models.user import AuthenticatedIdentity
from tradepost.services.identity import IdentityVerifier
from tradepost.services.message_router import ConnectionRegistry, MessageRouter

bearer_scheme = HTTPBearer(auto_error=False)


def get_identity_verifier(connection: HTTPConnection) -> IdentityVerifier:
    verifier: IdentityVerifier = connection.app.state.identity_verifier
    return verifier


def get_connection_registry(connection: HTTPConnection) -> ConnectionRegistry:
    registry: ConnectionRegistry = connection.app.state.connection_registry
    return registry


def get_message_router(
    verifier: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
    registry: Annotated[ConnectionRegistry, Depends(get_connection_registry)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> MessageRouter:
    return MessageRouter(verifier, registry, session_factory)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    verifier: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuthenticatedIdentity:
    """
    Verify the request's bearer credential.

    Every REST call is authenticated independently. The caller is added to
    the user directory on first contact.
    """
    if credentials is None:
        raise AuthenticationFailure("Missing bearer credential.")

    identity = await verifier.verify(credentials.credentials)
    await find_or_create_user(session, identity.subject_id, identity.username)
    return identity


CurrentIdentity = Annotated[AuthenticatedIdentity, Depends(get_current_identity)]


def ensure_acting_user(identity: AuthenticatedIdentity, user_id: str | None) -> str:
    """
    Resolve the acting user for a request that may name one explicitly.

    The authenticated subject always acts. A body that names a different
    user is refused rather than silently ignored.
    """
    if user_id is not None and user_id != identity.subject_id:
        raise AuthorizationError(
            "Requests may only act on behalf of the authenticated user.",
            detail=f"userId {user_id} does not match credential subject",
        )
    return identity.subject_id
