"""Abstract identity store — the only shared mutable resource of the core.

Learn: Every component receives an IdentityStore in its constructor
instead of importing a global database handle. Production wires in
SqlIdentityStore (one AsyncSession per request); tests and the local
demo wire in InMemoryIdentityStore.

Contract notes:
- Every write is individually atomic; no cross-entity transactions.
- consume_passwordless_link is a compare-and-set: of N concurrent
  calls with the same valid token, exactly one returns the email.
- role_permissions_for is a single batched lookup (user → groups in the
  team → roles), never one query per group.
- A unique-constraint violation (user email, role name) raises
  ConflictError; every other storage failure propagates as-is.
- Deletes cascade the way the foreign keys do: tenant → teams → users
  and groups, and on to their memberships, role links and sessions.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from teamguard.db.models import (
    Base,
    Group,
    PasswordlessLink,
    Role,
    Session,
    Team,
    Tenant,
    User,
)


class IdentityStore(ABC):
    """Async repository over the identity and resource collections."""

    # ─── Tenants & teams ────────────────────────────────

    @abstractmethod
    async def add_tenant(self, tenant: Tenant) -> Tenant: ...

    @abstractmethod
    async def get_tenant(self, tenant_id: uuid.UUID) -> Optional[Tenant]: ...

    @abstractmethod
    async def delete_tenant(self, tenant_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def add_team(self, team: Team) -> Team: ...

    @abstractmethod
    async def get_team(self, team_id: uuid.UUID) -> Optional[Team]: ...

    @abstractmethod
    async def list_teams(self, tenant_id: uuid.UUID) -> list[Team]: ...

    @abstractmethod
    async def update_team(
        self, team_id: uuid.UUID, **fields: Any
    ) -> Optional[Team]: ...

    @abstractmethod
    async def delete_team(self, team_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def count_users_by_team(self, tenant_id: uuid.UUID) -> dict[uuid.UUID, int]:
        """{team_id: user count} for the tenant's teams that have users."""

    # ─── Users ──────────────────────────────────────────

    @abstractmethod
    async def add_user(self, user: User) -> User: ...

    @abstractmethod
    async def get_user(self, user_id: uuid.UUID) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def list_users(
        self,
        tenant_id: Optional[uuid.UUID] = None,
        verified: Optional[bool] = None,
        team_id: Optional[uuid.UUID] = None,
    ) -> list[User]: ...

    @abstractmethod
    async def set_user_verified(
        self, user_id: uuid.UUID, verified: bool
    ) -> Optional[User]: ...

    @abstractmethod
    async def update_user(
        self, user_id: uuid.UUID, **fields: Any
    ) -> Optional[User]: ...

    @abstractmethod
    async def delete_user(self, user_id: uuid.UUID) -> bool:
        """Resources the user created are kept, with created_by cleared."""

    @abstractmethod
    async def groups_for_user(self, user_id: uuid.UUID) -> list[Group]: ...

    # ─── Groups, roles, links ───────────────────────────

    @abstractmethod
    async def add_group(self, group: Group) -> Group: ...

    @abstractmethod
    async def get_group(self, group_id: uuid.UUID) -> Optional[Group]: ...

    @abstractmethod
    async def list_groups(self, team_id: uuid.UUID) -> list[Group]: ...

    @abstractmethod
    async def update_group(
        self, group_id: uuid.UUID, **fields: Any
    ) -> Optional[Group]: ...

    @abstractmethod
    async def delete_group(self, group_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def list_group_members(self, group_id: uuid.UUID) -> list[User]: ...

    @abstractmethod
    async def list_group_roles(self, group_id: uuid.UUID) -> list[Role]: ...

    @abstractmethod
    async def add_role(self, role: Role) -> Role: ...

    @abstractmethod
    async def get_role(self, role_id: uuid.UUID) -> Optional[Role]: ...

    @abstractmethod
    async def get_role_by_name(self, name: str) -> Optional[Role]: ...

    @abstractmethod
    async def list_roles(self) -> list[Role]: ...

    @abstractmethod
    async def update_role(
        self, role_id: uuid.UUID, **fields: Any
    ) -> Optional[Role]: ...

    @abstractmethod
    async def delete_role(self, role_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def count_role_assignments(self, role_id: uuid.UUID) -> int: ...

    @abstractmethod
    async def role_assignment_counts(self) -> dict[uuid.UUID, int]:
        """{role_id: number of groups holding it}, in one query."""

    @abstractmethod
    async def add_member(self, user_id: uuid.UUID, group_id: uuid.UUID) -> None:
        """Idempotent: adding an existing membership is a no-op."""

    @abstractmethod
    async def remove_member(self, user_id: uuid.UUID, group_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def assign_role(self, group_id: uuid.UUID, role_id: uuid.UUID) -> None:
        """Idempotent: assigning an existing link is a no-op."""

    @abstractmethod
    async def unassign_role(self, group_id: uuid.UUID, role_id: uuid.UUID) -> bool: ...

    @abstractmethod
    async def role_permissions_for(
        self, user_id: uuid.UUID, team_id: uuid.UUID
    ) -> list[dict]:
        """Raw permission matrices of every role reaching the user via a
        group whose team_id == team_id. One batched lookup."""

    # ─── Passwordless links ─────────────────────────────

    @abstractmethod
    async def add_passwordless_link(self, link: PasswordlessLink) -> PasswordlessLink: ...

    @abstractmethod
    async def consume_passwordless_link(
        self, token: str, now: datetime
    ) -> Optional[str]:
        """Atomically mark an unused, unexpired link used; return its email."""

    @abstractmethod
    async def invalidate_passwordless_links(self, email: str) -> int:
        """Mark every unused link for the email as used. Returns the count."""

    @abstractmethod
    async def delete_expired_passwordless_links(self, now: datetime) -> int:
        """Delete links with expires_at <= now. Returns the count."""

    # ─── Sessions ───────────────────────────────────────

    @abstractmethod
    async def add_session(self, session: Session) -> Session: ...

    @abstractmethod
    async def get_session_user(self, token: str, now: datetime) -> Optional[User]:
        """User owning a session with this token and expires_at > now."""

    @abstractmethod
    async def delete_session(self, token: str) -> int: ...

    @abstractmethod
    async def delete_sessions_for_user(self, user_id: uuid.UUID) -> int: ...

    # ─── Team-scoped resources (keyed by module name) ───

    @abstractmethod
    async def add_resource(self, module: str, resource: Base) -> Base: ...

    @abstractmethod
    async def get_resource(self, module: str, resource_id: uuid.UUID) -> Optional[Base]: ...

    @abstractmethod
    async def list_resources(self, module: str, team_id: uuid.UUID) -> list[Base]: ...

    @abstractmethod
    async def update_resource(
        self, module: str, resource_id: uuid.UUID, **fields: Any
    ) -> Optional[Base]: ...

    @abstractmethod
    async def delete_resource(self, module: str, resource_id: uuid.UUID) -> bool: ...
