"""In-memory identity store — dicts behind one asyncio.Lock.

Learn: Used by the test suite and for local demos. Records are the same
ORM classes the SQL store returns (unattached to any session), so the
core cannot tell the two stores apart. Every method takes the lock, which
makes each operation atomic with respect to other coroutines — in
particular the check-then-mark step of consume_passwordless_link.

Deletes follow the foreign keys of the SQL schema: the _drop_* helpers
cascade by hand what PostgreSQL cascades with ON DELETE.
"""

import asyncio
import uuid
from collections import Counter
from datetime import datetime
from typing import Any, Optional

from teamguard.db.models import (
    RESOURCE_MODELS,
    Base,
    Group,
    PasswordlessLink,
    Role,
    Session,
    Team,
    Tenant,
    User,
    utcnow,
)
from teamguard.errors import ConflictError
from teamguard.store.base import IdentityStore


def _stamp(record: Base) -> Base:
    """Fill the client-side defaults a database would otherwise provide."""
    if hasattr(record, "id") and getattr(record, "id", None) is None:
        record.id = uuid.uuid4()
    if hasattr(record, "created_at") and getattr(record, "created_at", None) is None:
        record.created_at = utcnow()
    if hasattr(record, "updated_at") and getattr(record, "updated_at", None) is None:
        record.updated_at = record.created_at
    return record


class InMemoryIdentityStore(IdentityStore):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.tenants: dict[uuid.UUID, Tenant] = {}
        self.teams: dict[uuid.UUID, Team] = {}
        self.users: dict[uuid.UUID, User] = {}
        self.groups: dict[uuid.UUID, Group] = {}
        self.roles: dict[uuid.UUID, Role] = {}
        self.user_groups: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self.group_roles: set[tuple[uuid.UUID, uuid.UUID]] = set()
        self.links: dict[str, PasswordlessLink] = {}
        self.sessions: dict[str, Session] = {}
        self.resources: dict[str, dict[uuid.UUID, Base]] = {
            module: {} for module in RESOURCE_MODELS
        }
        # Incremented per role_permissions_for call (N+1 regression tests)
        self.permission_lookups = 0

    # ─── Cascades (caller holds the lock) ───────────────

    def _drop_user(self, user_id: uuid.UUID) -> None:
        self.users.pop(user_id, None)
        self.user_groups = {ug for ug in self.user_groups if ug[0] != user_id}
        self.sessions = {t: s for t, s in self.sessions.items() if s.user_id != user_id}
        for items in self.resources.values():
            for resource in items.values():
                if resource.created_by == user_id:
                    resource.created_by = None

    def _drop_group(self, group_id: uuid.UUID) -> None:
        self.groups.pop(group_id, None)
        self.user_groups = {ug for ug in self.user_groups if ug[1] != group_id}
        self.group_roles = {gr for gr in self.group_roles if gr[0] != group_id}

    def _drop_team(self, team_id: uuid.UUID) -> None:
        self.teams.pop(team_id, None)
        for uid in [u.id for u in self.users.values() if u.team_id == team_id]:
            self._drop_user(uid)
        for gid in [g.id for g in self.groups.values() if g.team_id == team_id]:
            self._drop_group(gid)
        for module, items in self.resources.items():
            self.resources[module] = {
                rid: r for rid, r in items.items() if r.team_id != team_id
            }

    def _email_taken(self, email: str, exclude: Optional[uuid.UUID] = None) -> bool:
        return any(u.email == email and u.id != exclude for u in self.users.values())

    def _role_name_taken(self, name: str, exclude: Optional[uuid.UUID] = None) -> bool:
        return any(r.name == name and r.id != exclude for r in self.roles.values())

    # ─── Tenants & teams ────────────────────────────────

    async def add_tenant(self, tenant: Tenant) -> Tenant:
        async with self._lock:
            self.tenants[_stamp(tenant).id] = tenant
            return tenant

    async def get_tenant(self, tenant_id: uuid.UUID) -> Optional[Tenant]:
        async with self._lock:
            return self.tenants.get(tenant_id)

    async def delete_tenant(self, tenant_id: uuid.UUID) -> bool:
        async with self._lock:
            if self.tenants.pop(tenant_id, None) is None:
                return False
            for tid in [t.id for t in self.teams.values() if t.tenant_id == tenant_id]:
                self._drop_team(tid)
            for uid in [u.id for u in self.users.values() if u.tenant_id == tenant_id]:
                self._drop_user(uid)
            return True

    async def add_team(self, team: Team) -> Team:
        async with self._lock:
            self.teams[_stamp(team).id] = team
            return team

    async def get_team(self, team_id: uuid.UUID) -> Optional[Team]:
        async with self._lock:
            return self.teams.get(team_id)

    async def list_teams(self, tenant_id: uuid.UUID) -> list[Team]:
        async with self._lock:
            teams = [t for t in self.teams.values() if t.tenant_id == tenant_id]
        return sorted(teams, key=lambda t: t.created_at)

    async def update_team(self, team_id: uuid.UUID, **fields: Any) -> Optional[Team]:
        async with self._lock:
            team = self.teams.get(team_id)
            if team is not None:
                for key, value in fields.items():
                    setattr(team, key, value)
            return team

    async def delete_team(self, team_id: uuid.UUID) -> bool:
        async with self._lock:
            if team_id not in self.teams:
                return False
            self._drop_team(team_id)
            return True

    async def count_users_by_team(self, tenant_id: uuid.UUID) -> dict[uuid.UUID, int]:
        async with self._lock:
            return dict(
                Counter(u.team_id for u in self.users.values() if u.tenant_id == tenant_id)
            )

    # ─── Users ──────────────────────────────────────────

    async def add_user(self, user: User) -> User:
        async with self._lock:
            if self._email_taken(user.email):
                raise ConflictError("User with this email already exists")
            if user.verified is None:
                user.verified = False
            self.users[_stamp(user).id] = user
            return user

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        async with self._lock:
            return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self._lock:
            return next((u for u in self.users.values() if u.email == email), None)

    async def list_users(
        self,
        tenant_id: Optional[uuid.UUID] = None,
        verified: Optional[bool] = None,
        team_id: Optional[uuid.UUID] = None,
    ) -> list[User]:
        async with self._lock:
            users = [
                u
                for u in self.users.values()
                if (tenant_id is None or u.tenant_id == tenant_id)
                and (verified is None or u.verified == verified)
                and (team_id is None or u.team_id == team_id)
            ]
        return sorted(users, key=lambda u: u.created_at)

    async def set_user_verified(
        self, user_id: uuid.UUID, verified: bool
    ) -> Optional[User]:
        async with self._lock:
            user = self.users.get(user_id)
            if user is not None:
                user.verified = verified
            return user

    async def update_user(self, user_id: uuid.UUID, **fields: Any) -> Optional[User]:
        async with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return None
            if "email" in fields and self._email_taken(fields["email"], exclude=user_id):
                raise ConflictError("User with this email already exists")
            for key, value in fields.items():
                setattr(user, key, value)
            return user

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        async with self._lock:
            if user_id not in self.users:
                return False
            self._drop_user(user_id)
            return True

    async def groups_for_user(self, user_id: uuid.UUID) -> list[Group]:
        async with self._lock:
            groups = [
                self.groups[gid]
                for uid, gid in self.user_groups
                if uid == user_id and gid in self.groups
            ]
        return sorted(groups, key=lambda g: g.name)

    # ─── Groups, roles, links ───────────────────────────

    async def add_group(self, group: Group) -> Group:
        async with self._lock:
            self.groups[_stamp(group).id] = group
            return group

    async def get_group(self, group_id: uuid.UUID) -> Optional[Group]:
        async with self._lock:
            return self.groups.get(group_id)

    async def list_groups(self, team_id: uuid.UUID) -> list[Group]:
        async with self._lock:
            groups = [g for g in self.groups.values() if g.team_id == team_id]
        return sorted(groups, key=lambda g: g.name)

    async def update_group(self, group_id: uuid.UUID, **fields: Any) -> Optional[Group]:
        async with self._lock:
            group = self.groups.get(group_id)
            if group is not None:
                for key, value in fields.items():
                    setattr(group, key, value)
            return group

    async def delete_group(self, group_id: uuid.UUID) -> bool:
        async with self._lock:
            if group_id not in self.groups:
                return False
            self._drop_group(group_id)
            return True

    async def list_group_members(self, group_id: uuid.UUID) -> list[User]:
        async with self._lock:
            users = [
                self.users[uid]
                for uid, gid in self.user_groups
                if gid == group_id and uid in self.users
            ]
        return sorted(users, key=lambda u: u.email)

    async def list_group_roles(self, group_id: uuid.UUID) -> list[Role]:
        async with self._lock:
            roles = [
                self.roles[rid]
                for gid, rid in self.group_roles
                if gid == group_id and rid in self.roles
            ]
        return sorted(roles, key=lambda r: r.name)

    async def add_role(self, role: Role) -> Role:
        async with self._lock:
            if self._role_name_taken(role.name):
                raise ConflictError("Role with this name already exists")
            self.roles[_stamp(role).id] = role
            return role

    async def get_role(self, role_id: uuid.UUID) -> Optional[Role]:
        async with self._lock:
            return self.roles.get(role_id)

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        async with self._lock:
            return next((r for r in self.roles.values() if r.name == name), None)

    async def list_roles(self) -> list[Role]:
        async with self._lock:
            return sorted(self.roles.values(), key=lambda r: r.name)

    async def update_role(self, role_id: uuid.UUID, **fields: Any) -> Optional[Role]:
        async with self._lock:
            role = self.roles.get(role_id)
            if role is None:
                return None
            if "name" in fields and self._role_name_taken(fields["name"], exclude=role_id):
                raise ConflictError("Role with this name already exists")
            for key, value in fields.items():
                setattr(role, key, value)
            return role

    async def delete_role(self, role_id: uuid.UUID) -> bool:
        async with self._lock:
            if self.roles.pop(role_id, None) is None:
                return False
            self.group_roles = {gr for gr in self.group_roles if gr[1] != role_id}
            return True

    async def count_role_assignments(self, role_id: uuid.UUID) -> int:
        async with self._lock:
            return sum(1 for _, rid in self.group_roles if rid == role_id)

    async def role_assignment_counts(self) -> dict[uuid.UUID, int]:
        async with self._lock:
            return dict(Counter(rid for _, rid in self.group_roles))

    async def add_member(self, user_id: uuid.UUID, group_id: uuid.UUID) -> None:
        async with self._lock:
            self.user_groups.add((user_id, group_id))

    async def remove_member(self, user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
        async with self._lock:
            if (user_id, group_id) not in self.user_groups:
                return False
            self.user_groups.discard((user_id, group_id))
            return True

    async def assign_role(self, group_id: uuid.UUID, role_id: uuid.UUID) -> None:
        async with self._lock:
            self.group_roles.add((group_id, role_id))

    async def unassign_role(self, group_id: uuid.UUID, role_id: uuid.UUID) -> bool:
        async with self._lock:
            if (group_id, role_id) not in self.group_roles:
                return False
            self.group_roles.discard((group_id, role_id))
            return True

    async def role_permissions_for(
        self, user_id: uuid.UUID, team_id: uuid.UUID
    ) -> list[dict]:
        async with self._lock:
            self.permission_lookups += 1
            group_ids = {
                gid
                for uid, gid in self.user_groups
                if uid == user_id
                and gid in self.groups
                and self.groups[gid].team_id == team_id
            }
            return [
                self.roles[rid].permissions
                for gid, rid in self.group_roles
                if gid in group_ids and rid in self.roles
            ]

    # ─── Passwordless links ─────────────────────────────

    async def add_passwordless_link(self, link: PasswordlessLink) -> PasswordlessLink:
        async with self._lock:
            if link.used is None:
                link.used = False
            self.links[_stamp(link).token] = link
            return link

    async def consume_passwordless_link(
        self, token: str, now: datetime
    ) -> Optional[str]:
        async with self._lock:
            link = self.links.get(token)
            if link is None or link.used or link.expires_at <= now:
                return None
            link.used = True
            return link.email

    async def invalidate_passwordless_links(self, email: str) -> int:
        async with self._lock:
            count = 0
            for link in self.links.values():
                if link.email == email and not link.used:
                    link.used = True
                    count += 1
            return count

    async def delete_expired_passwordless_links(self, now: datetime) -> int:
        async with self._lock:
            expired = [t for t, link in self.links.items() if link.expires_at <= now]
            for token in expired:
                del self.links[token]
            return len(expired)

    # ─── Sessions ───────────────────────────────────────

    async def add_session(self, session: Session) -> Session:
        async with self._lock:
            self.sessions[_stamp(session).token] = session
            return session

    async def get_session_user(self, token: str, now: datetime) -> Optional[User]:
        async with self._lock:
            session = self.sessions.get(token)
            if session is None or session.expires_at <= now:
                return None
            return self.users.get(session.user_id)

    async def delete_session(self, token: str) -> int:
        async with self._lock:
            return 1 if self.sessions.pop(token, None) is not None else 0

    async def delete_sessions_for_user(self, user_id: uuid.UUID) -> int:
        async with self._lock:
            tokens = [t for t, s in self.sessions.items() if s.user_id == user_id]
            for token in tokens:
                del self.sessions[token]
            return len(tokens)

    # ─── Team-scoped resources ──────────────────────────

    async def add_resource(self, module: str, resource: Base) -> Base:
        async with self._lock:
            self.resources[module][_stamp(resource).id] = resource
            return resource

    async def get_resource(self, module: str, resource_id: uuid.UUID) -> Optional[Base]:
        async with self._lock:
            return self.resources[module].get(resource_id)

    async def list_resources(self, module: str, team_id: uuid.UUID) -> list[Base]:
        async with self._lock:
            items = [r for r in self.resources[module].values() if r.team_id == team_id]
        return sorted(items, key=lambda r: r.created_at, reverse=True)

    async def update_resource(
        self, module: str, resource_id: uuid.UUID, **fields: Any
    ) -> Optional[Base]:
        async with self._lock:
            resource = self.resources[module].get(resource_id)
            if resource is not None:
                for key, value in fields.items():
                    setattr(resource, key, value)
                resource.updated_at = utcnow()
            return resource

    async def delete_resource(self, module: str, resource_id: uuid.UUID) -> bool:
        async with self._lock:
            return self.resources[module].pop(resource_id, None) is not None
