"""Token issuer — one-time passwordless tokens and session tokens.

Learn: Both token kinds are opaque random strings from
secrets.token_urlsafe (URL-safe base64). With the default 32 bytes that
is 256 bits of entropy; settings refuse anything under 20 bytes (160 bits).

Redemption is a state transition, not a read: the store's
consume_passwordless_link does check-and-mark-used in one atomic step,
so a token works exactly once, even under concurrent redemption.
"""

import secrets
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from teamguard.db.models import PasswordlessLink, Session, utcnow
from teamguard.store.base import IdentityStore

logger = structlog.get_logger()

DEFAULT_LINK_TTL_MINUTES = 15
DEFAULT_SESSION_TTL_HOURS = 24
DEFAULT_TOKEN_BYTES = 32


class TokenIssuer:
    def __init__(
        self,
        store: IdentityStore,
        *,
        token_bytes: int = DEFAULT_TOKEN_BYTES,
        link_ttl_minutes: int = DEFAULT_LINK_TTL_MINUTES,
        session_ttl_hours: int = DEFAULT_SESSION_TTL_HOURS,
        invalidate_prior_links: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        if token_bytes < 20:
            raise ValueError("token_bytes must be at least 20 (160 bits)")
        self.store = store
        self.token_bytes = token_bytes
        self.link_ttl_minutes = link_ttl_minutes
        self.session_ttl_hours = session_ttl_hours
        self.invalidate_prior_links = invalidate_prior_links
        self.clock = clock

    def _new_token(self) -> str:
        return secrets.token_urlsafe(self.token_bytes)

    async def issue_passwordless_token(
        self, email: str, ttl_minutes: Optional[int] = None
    ) -> str:
        """Persist a fresh single-use link for email and return its token.

        Earlier outstanding links stay valid unless invalidate_prior_links
        is set, in which case they are marked used first.
        """
        if self.invalidate_prior_links:
            revoked = await self.store.invalidate_passwordless_links(email)
            if revoked:
                logger.info("teamguard.prior_links_invalidated", count=revoked)

        ttl = ttl_minutes if ttl_minutes is not None else self.link_ttl_minutes
        token = self._new_token()
        await self.store.add_passwordless_link(
            PasswordlessLink(
                id=uuid.uuid4(),
                email=email,
                token=token,
                expires_at=self.clock() + timedelta(minutes=ttl),
                used=False,
            )
        )
        return token

    async def redeem_passwordless_token(self, token: str) -> Optional[str]:
        """Consume the token; return its email, or None if not redeemable.

        Not found, expired and already used all return None — callers
        treat them uniformly as an invalid credential.
        """
        if not token:
            return None
        return await self.store.consume_passwordless_link(token, self.clock())

    async def issue_session_token(
        self, user_id: uuid.UUID, ttl_hours: Optional[int] = None
    ) -> str:
        ttl = ttl_hours if ttl_hours is not None else self.session_ttl_hours
        token = self._new_token()
        await self.store.add_session(
            Session(
                id=uuid.uuid4(),
                user_id=user_id,
                token=token,
                expires_at=self.clock() + timedelta(hours=ttl),
            )
        )
        return token

    async def purge_expired_links(self, now: Optional[datetime] = None) -> int:
        """Delete links whose expires_at is at or before now. Maintenance only."""
        purged = await self.store.delete_expired_passwordless_links(now or self.clock())
        logger.info("teamguard.links_purged", count=purged)
        return purged
