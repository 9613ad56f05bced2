"""Typed identity and request context.

Learn: Instead of middleware stuffing ad-hoc attributes (currentUser,
teamId) onto a request object, the route layer builds a RequestContext
explicitly and passes it to the gate. Everything the authorization
decision depends on is visible in the function signature.
"""

import uuid
from dataclasses import dataclass
from enum import Enum

from teamguard.db.models import User


class CredentialKind(str, Enum):
    SESSION = "session"
    PASSWORDLESS = "passwordless"


@dataclass(frozen=True)
class Credential:
    kind: CredentialKind
    token: str

    def __repr__(self) -> str:
        # Never echo the token itself
        return f"Credential(kind={self.kind.value!r}, token=***)"

    @classmethod
    def session(cls, token: str) -> "Credential":
        return cls(CredentialKind.SESSION, token)

    @classmethod
    def passwordless(cls, token: str) -> "Credential":
        return cls(CredentialKind.PASSWORDLESS, token)


@dataclass(frozen=True)
class Identity:
    """An authenticated, verified user."""

    user_id: uuid.UUID
    email: str
    name: str
    tenant_id: uuid.UUID
    team_id: uuid.UUID

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            tenant_id=user.tenant_id,
            team_id=user.team_id,
        )


@dataclass(frozen=True)
class RequestContext:
    """Who is asking, and for which team the permission is being checked."""

    identity: Identity
    team_id: uuid.UUID

    @property
    def user_id(self) -> uuid.UUID:
        return self.identity.user_id
