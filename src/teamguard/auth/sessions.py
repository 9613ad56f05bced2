"""Session manager — establishes and tears down identity.

Learn: Authentication status of a user moves through:

    Unregistered → PendingVerification → Verified (no session)
        → Verified (active session) → logout/expiry → Verified (no session)

and an admin can flip Verified → PendingVerification at any time. The
verified flag is re-checked on EVERY authenticate() call, so an
unverified user holding a still-valid session is rejected with
UnverifiedAccountError (forbidden-class), distinct from
InvalidCredentialError (no/expired session, bad token).
"""

import uuid
from datetime import datetime
from typing import Callable, Optional

import structlog

from teamguard.auth.context import Credential, CredentialKind, Identity
from teamguard.auth.tokens import TokenIssuer
from teamguard.db.models import User, utcnow
from teamguard.errors import (
    InvalidCredentialError,
    NotFoundError,
    UnverifiedAccountError,
)
from teamguard.store.base import IdentityStore

logger = structlog.get_logger()


class SessionManager:
    def __init__(
        self,
        store: IdentityStore,
        issuer: Optional[TokenIssuer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.issuer = issuer or TokenIssuer(store, clock=clock or utcnow)
        self.clock = clock or self.issuer.clock

    async def authenticate(self, credential: Credential) -> Identity:
        if credential.kind is CredentialKind.SESSION:
            return await self._authenticate_session(credential.token)
        return await self._authenticate_passwordless(credential.token)

    async def _authenticate_session(self, token: str) -> Identity:
        if not token:
            raise InvalidCredentialError("No session")
        user = await self.store.get_session_user(token, self.clock())
        if user is None:
            raise InvalidCredentialError("Invalid or expired session")
        return self._require_verified(user)

    async def _authenticate_passwordless(self, token: str) -> Identity:
        email = await self.issuer.redeem_passwordless_token(token)
        if email is None:
            raise InvalidCredentialError("Invalid or expired authentication token")
        user = await self.store.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        return self._require_verified(user)

    @staticmethod
    def _require_verified(user: User) -> Identity:
        if not user.verified:
            raise UnverifiedAccountError("Account not verified")
        return Identity.from_user(user)

    async def create_session(self, user_id: uuid.UUID) -> str:
        token = await self.issuer.issue_session_token(user_id)
        logger.info("teamguard.session_created", user_id=str(user_id))
        return token

    async def login_with_passwordless(self, token: str) -> tuple[Identity, str]:
        """Redeem a login token and open a session for its (verified) owner."""
        identity = await self.authenticate(Credential.passwordless(token))
        session_token = await self.create_session(identity.user_id)
        return identity, session_token

    async def destroy_session(self, token: str) -> None:
        """Delete the session; an unknown token is a no-op."""
        if token:
            await self.store.delete_session(token)

    async def destroy_all_sessions_for_user(self, user_id: uuid.UUID) -> int:
        revoked = await self.store.delete_sessions_for_user(user_id)
        logger.info("teamguard.sessions_revoked", user_id=str(user_id), count=revoked)
        return revoked
