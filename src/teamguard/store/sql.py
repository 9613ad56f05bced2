"""SQLAlchemy-backed identity store (PostgreSQL via asyncpg).

Learn: One SqlIdentityStore wraps one AsyncSession — i.e. one request.
Every write method commits on its own, so each write is individually
atomic. The two performance/safety-critical queries:

- role_permissions_for: a single join
  user_groups → groups (team filter) → group_roles → roles.
- consume_passwordless_link: a single conditional UPDATE … RETURNING,
  so two concurrent redemptions of one token cannot both succeed.

Unique-constraint races (two registrations of one email, two roles with
one name) surface at commit as IntegrityError; _commit rolls back and
re-raises them as ConflictError. Deletes rely on the ON DELETE rules of
the schema for cascading.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamguard.db.models import (
    RESOURCE_MODELS,
    Base,
    Group,
    GroupRole,
    PasswordlessLink,
    Role,
    Session,
    Team,
    Tenant,
    User,
    UserGroup,
    utcnow,
)
from teamguard.errors import ConflictError
from teamguard.store.base import IdentityStore


class SqlIdentityStore(IdentityStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Record conflicts with an existing one") from exc

    async def _add(self, record: Base) -> Base:
        self.db.add(record)
        await self._commit()
        await self.db.refresh(record)
        return record

    async def _update(
        self, model: type[Base], record_id: uuid.UUID, fields: dict
    ) -> Optional[Base]:
        record = await self.db.get(model, record_id)
        if record is None:
            return None
        for key, value in fields.items():
            setattr(record, key, value)
        await self._commit()
        return record

    async def _delete(self, model: type[Base], record_id: uuid.UUID) -> bool:
        result = await self.db.execute(delete(model).where(model.id == record_id))
        await self.db.commit()
        return result.rowcount > 0

    # ─── Tenants & teams ────────────────────────────────

    async def add_tenant(self, tenant: Tenant) -> Tenant:
        return await self._add(tenant)

    async def get_tenant(self, tenant_id: uuid.UUID) -> Optional[Tenant]:
        return await self.db.get(Tenant, tenant_id)

    async def delete_tenant(self, tenant_id: uuid.UUID) -> bool:
        return await self._delete(Tenant, tenant_id)

    async def add_team(self, team: Team) -> Team:
        return await self._add(team)

    async def get_team(self, team_id: uuid.UUID) -> Optional[Team]:
        return await self.db.get(Team, team_id)

    async def list_teams(self, tenant_id: uuid.UUID) -> list[Team]:
        result = await self.db.execute(
            select(Team).where(Team.tenant_id == tenant_id).order_by(Team.created_at)
        )
        return list(result.scalars().all())

    async def update_team(self, team_id: uuid.UUID, **fields: Any) -> Optional[Team]:
        return await self._update(Team, team_id, fields)

    async def delete_team(self, team_id: uuid.UUID) -> bool:
        return await self._delete(Team, team_id)

    async def count_users_by_team(self, tenant_id: uuid.UUID) -> dict[uuid.UUID, int]:
        result = await self.db.execute(
            select(User.team_id, func.count(User.id).label("users"))
            .where(User.tenant_id == tenant_id)
            .group_by(User.team_id)
        )
        return {row.team_id: int(row.users) for row in result}

    # ─── Users ──────────────────────────────────────────

    async def add_user(self, user: User) -> User:
        return await self._add(user)

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def list_users(
        self,
        tenant_id: Optional[uuid.UUID] = None,
        verified: Optional[bool] = None,
        team_id: Optional[uuid.UUID] = None,
    ) -> list[User]:
        q = select(User).order_by(User.created_at)
        if tenant_id is not None:
            q = q.where(User.tenant_id == tenant_id)
        if verified is not None:
            q = q.where(User.verified.is_(verified))
        if team_id is not None:
            q = q.where(User.team_id == team_id)
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def set_user_verified(
        self, user_id: uuid.UUID, verified: bool
    ) -> Optional[User]:
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(verified=verified)
            .returning(User)
        )
        user = result.scalars().first()
        await self.db.commit()
        return user

    async def update_user(self, user_id: uuid.UUID, **fields: Any) -> Optional[User]:
        return await self._update(User, user_id, fields)

    async def delete_user(self, user_id: uuid.UUID) -> bool:
        return await self._delete(User, user_id)

    async def groups_for_user(self, user_id: uuid.UUID) -> list[Group]:
        result = await self.db.execute(
            select(Group)
            .join(UserGroup, UserGroup.group_id == Group.id)
            .where(UserGroup.user_id == user_id)
            .order_by(Group.name)
        )
        return list(result.scalars().all())

    # ─── Groups, roles, links ───────────────────────────

    async def add_group(self, group: Group) -> Group:
        return await self._add(group)

    async def get_group(self, group_id: uuid.UUID) -> Optional[Group]:
        return await self.db.get(Group, group_id)

    async def list_groups(self, team_id: uuid.UUID) -> list[Group]:
        result = await self.db.execute(
            select(Group).where(Group.team_id == team_id).order_by(Group.name)
        )
        return list(result.scalars().all())

    async def update_group(self, group_id: uuid.UUID, **fields: Any) -> Optional[Group]:
        return await self._update(Group, group_id, fields)

    async def delete_group(self, group_id: uuid.UUID) -> bool:
        return await self._delete(Group, group_id)

    async def list_group_members(self, group_id: uuid.UUID) -> list[User]:
        result = await self.db.execute(
            select(User)
            .join(UserGroup, UserGroup.user_id == User.id)
            .where(UserGroup.group_id == group_id)
            .order_by(User.email)
        )
        return list(result.scalars().all())

    async def list_group_roles(self, group_id: uuid.UUID) -> list[Role]:
        result = await self.db.execute(
            select(Role)
            .join(GroupRole, GroupRole.role_id == Role.id)
            .where(GroupRole.group_id == group_id)
            .order_by(Role.name)
        )
        return list(result.scalars().all())

    async def add_role(self, role: Role) -> Role:
        return await self._add(role)

    async def get_role(self, role_id: uuid.UUID) -> Optional[Role]:
        return await self.db.get(Role, role_id)

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        result = await self.db.execute(select(Role).where(Role.name == name))
        return result.scalars().first()

    async def list_roles(self) -> list[Role]:
        result = await self.db.execute(select(Role).order_by(Role.name))
        return list(result.scalars().all())

    async def update_role(self, role_id: uuid.UUID, **fields: Any) -> Optional[Role]:
        return await self._update(Role, role_id, fields)

    async def delete_role(self, role_id: uuid.UUID) -> bool:
        return await self._delete(Role, role_id)

    async def count_role_assignments(self, role_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(GroupRole).where(GroupRole.role_id == role_id)
        )
        return result.scalar_one()

    async def role_assignment_counts(self) -> dict[uuid.UUID, int]:
        result = await self.db.execute(
            select(GroupRole.role_id, func.count().label("groups")).group_by(GroupRole.role_id)
        )
        return {row.role_id: int(row.groups) for row in result}

    async def add_member(self, user_id: uuid.UUID, group_id: uuid.UUID) -> None:
        await self.db.execute(
            pg_insert(UserGroup)
            .values(user_id=user_id, group_id=group_id)
            .on_conflict_do_nothing()
        )
        await self.db.commit()

    async def remove_member(self, user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            delete(UserGroup).where(
                UserGroup.user_id == user_id, UserGroup.group_id == group_id
            )
        )
        await self.db.commit()
        return result.rowcount > 0

    async def assign_role(self, group_id: uuid.UUID, role_id: uuid.UUID) -> None:
        await self.db.execute(
            pg_insert(GroupRole)
            .values(group_id=group_id, role_id=role_id)
            .on_conflict_do_nothing()
        )
        await self.db.commit()

    async def unassign_role(self, group_id: uuid.UUID, role_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            delete(GroupRole).where(
                GroupRole.group_id == group_id, GroupRole.role_id == role_id
            )
        )
        await self.db.commit()
        return result.rowcount > 0

    async def role_permissions_for(
        self, user_id: uuid.UUID, team_id: uuid.UUID
    ) -> list[dict]:
        q = (
            select(Role.permissions)
            .select_from(UserGroup)
            .join(Group, UserGroup.group_id == Group.id)
            .join(GroupRole, GroupRole.group_id == Group.id)
            .join(Role, GroupRole.role_id == Role.id)
            .where(UserGroup.user_id == user_id, Group.team_id == team_id)
        )
        result = await self.db.execute(q)
        return list(result.scalars().all())

    # ─── Passwordless links ─────────────────────────────

    async def add_passwordless_link(self, link: PasswordlessLink) -> PasswordlessLink:
        return await self._add(link)

    async def consume_passwordless_link(
        self, token: str, now: datetime
    ) -> Optional[str]:
        result = await self.db.execute(
            update(PasswordlessLink)
            .where(
                PasswordlessLink.token == token,
                PasswordlessLink.used.is_(False),
                PasswordlessLink.expires_at > now,
            )
            .values(used=True)
            .returning(PasswordlessLink.email)
        )
        email = result.scalars().first()
        await self.db.commit()
        return email

    async def invalidate_passwordless_links(self, email: str) -> int:
        result = await self.db.execute(
            update(PasswordlessLink)
            .where(PasswordlessLink.email == email, PasswordlessLink.used.is_(False))
            .values(used=True)
        )
        await self.db.commit()
        return result.rowcount

    async def delete_expired_passwordless_links(self, now: datetime) -> int:
        result = await self.db.execute(
            delete(PasswordlessLink).where(PasswordlessLink.expires_at <= now)
        )
        await self.db.commit()
        return result.rowcount

    # ─── Sessions ───────────────────────────────────────

    async def add_session(self, session: Session) -> Session:
        return await self._add(session)

    async def get_session_user(self, token: str, now: datetime) -> Optional[User]:
        result = await self.db.execute(
            select(User)
            .join(Session, Session.user_id == User.id)
            .where(Session.token == token, Session.expires_at > now)
            .limit(1)
        )
        return result.scalars().first()

    async def delete_session(self, token: str) -> int:
        result = await self.db.execute(delete(Session).where(Session.token == token))
        await self.db.commit()
        return result.rowcount

    async def delete_sessions_for_user(self, user_id: uuid.UUID) -> int:
        result = await self.db.execute(delete(Session).where(Session.user_id == user_id))
        await self.db.commit()
        return result.rowcount

    # ─── Team-scoped resources ──────────────────────────

    async def add_resource(self, module: str, resource: Base) -> Base:
        return await self._add(resource)

    async def get_resource(self, module: str, resource_id: uuid.UUID) -> Optional[Base]:
        return await self.db.get(RESOURCE_MODELS[module], resource_id)

    async def list_resources(self, module: str, team_id: uuid.UUID) -> list[Base]:
        model = RESOURCE_MODELS[module]
        result = await self.db.execute(
            select(model).where(model.team_id == team_id).order_by(model.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_resource(
        self, module: str, resource_id: uuid.UUID, **fields: Any
    ) -> Optional[Base]:
        resource = await self.db.get(RESOURCE_MODELS[module], resource_id)
        if resource is None:
            return None
        for key, value in fields.items():
            setattr(resource, key, value)
        resource.updated_at = utcnow()
        await self.db.commit()
        return resource

    async def delete_resource(self, module: str, resource_id: uuid.UUID) -> bool:
        model = RESOURCE_MODELS[module]
        result = await self.db.execute(delete(model).where(model.id == resource_id))
        await self.db.commit()
        return result.rowcount > 0
