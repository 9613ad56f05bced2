"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. They build the
core components around a per-request store and turn the incoming
credential into a typed Identity, then into a RequestContext for a
specific team. Failures are raised as AccessError subclasses; the app's
exception handler maps their ErrorKind to an HTTP status.

The session token is read from the session cookie first, then from an
`Authorization: Bearer <token>` header.
"""

import uuid
from typing import Optional

from fastapi import Cookie, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from teamguard.auth.context import Credential, Identity, RequestContext
from teamguard.auth.sessions import SessionManager
from teamguard.auth.tokens import TokenIssuer
from teamguard.config import settings
from teamguard.db.engine import get_db
from teamguard.errors import InvalidCredentialError
from teamguard.permissions.gate import AccessGate
from teamguard.store.base import IdentityStore
from teamguard.store.sql import SqlIdentityStore


async def get_store(db: AsyncSession = Depends(get_db)) -> IdentityStore:
    """Per-request store. Tests override this with an in-memory store."""
    return SqlIdentityStore(db)


def get_token_issuer(store: IdentityStore = Depends(get_store)) -> TokenIssuer:
    return TokenIssuer(
        store,
        token_bytes=settings.token_bytes,
        link_ttl_minutes=settings.passwordless_ttl_minutes,
        session_ttl_hours=settings.session_ttl_hours,
        invalidate_prior_links=settings.invalidate_prior_links,
    )


def get_session_manager(
    store: IdentityStore = Depends(get_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> SessionManager:
    return SessionManager(store, issuer)


def get_gate(store: IdentityStore = Depends(get_store)) -> AccessGate:
    return AccessGate(store)


def session_token_from_request(
    session: Optional[str] = Cookie(None, alias=settings.session_cookie_name),
    authorization: Optional[str] = Header(None),
) -> Optional[str]:
    if session:
        return session
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_identity(
    token: Optional[str] = Depends(session_token_from_request),
    sessions: SessionManager = Depends(get_session_manager),
) -> Identity:
    """Verified identity behind the session token (401 / 403 otherwise)."""
    if not token:
        raise InvalidCredentialError("No session")
    return await sessions.authenticate(Credential.session(token))


def get_request_context(
    team_id: uuid.UUID = Query(..., description="Team the operation is scoped to"),
    identity: Identity = Depends(get_current_identity),
) -> RequestContext:
    return RequestContext(identity=identity, team_id=team_id)

