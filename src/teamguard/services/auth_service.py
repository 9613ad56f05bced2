"""Auth service — the passwordless login flow end to end.

    request_login(email)  → user must exist and be verified → token issued,
                            handed to the notifier
    verify(token)         → token redeemed (single use) → session created,
                            permissions for the user's own team returned
    logout(session_token) → session deleted (unknown token is a no-op)
"""

from dataclasses import dataclass

from teamguard.auth.context import Identity
from teamguard.auth.sessions import SessionManager
from teamguard.errors import NotFoundError, UnverifiedAccountError
from teamguard.notify import Notifier
from teamguard.permissions.resolver import PermissionResolver
from teamguard.permissions.types import PermissionMap
from teamguard.store.base import IdentityStore


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    session_token: str
    permissions: PermissionMap


class AuthService:
    def __init__(
        self,
        store: IdentityStore,
        sessions: SessionManager,
        notifier: Notifier,
    ):
        self.store = store
        self.sessions = sessions
        self.notifier = notifier
        self.resolver = PermissionResolver(store)

    async def request_login(self, email: str) -> str:
        user = await self.store.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        if not user.verified:
            raise UnverifiedAccountError(
                "Account not verified. Please contact your administrator."
            )
        token = await self.sessions.issuer.issue_passwordless_token(email)
        await self.notifier.send_login_link(email, token)
        return token

    async def verify(self, token: str) -> LoginResult:
        identity, session_token = await self.sessions.login_with_passwordless(token)
        permissions = await self.resolver.resolve(identity.user_id, identity.team_id)
        return LoginResult(identity, session_token, permissions)

    async def permissions_for(self, identity: Identity) -> PermissionMap:
        return await self.resolver.resolve(identity.user_id, identity.team_id)

    async def logout(self, session_token: str) -> None:
        await self.sessions.destroy_session(session_token)
