"""Directory service — registration, verification, teams, users, roles, groups.

Learn: Service layer separates business logic from HTTP routing.
Routes call services, services call the identity store. Everything a
signed-in admin touches is scoped to the admin's own tenant: a team,
group or user from another tenant is reported as not found, exactly as
if it did not exist.

Roles are global templates (not tenant- or team-scoped); their
permission matrices are validated here, at the write boundary, so the
resolver only ever reads well-formed data.

Uniqueness (user email, role name) is checked up front for a clean
error, and enforced again by the store: a racing duplicate comes back
from the store as ConflictError too.
"""

import uuid
from typing import Any, Optional

import structlog

from teamguard.auth.context import Identity
from teamguard.db.models import Group, Role, Team, Tenant, User
from teamguard.errors import ConflictError, NotFoundError
from teamguard.permissions.types import PermissionMap
from teamguard.store.base import IdentityStore

logger = structlog.get_logger()

EMAIL_TAKEN = "User with this email already exists"
ROLE_NAME_TAKEN = "Role with this name already exists"


class DirectoryService:
    """Business logic for tenants, teams, users, groups and roles."""

    def __init__(self, store: IdentityStore, revoke_sessions_on_unverify: bool = False):
        self.store = store
        self.revoke_sessions_on_unverify = revoke_sessions_on_unverify

    # ─── Registration ───────────────────────────────────

    async def register(
        self, email: str, name: str, tenant_name: str, team_name: str
    ) -> User:
        """Create tenant + team + unverified user. Awaits admin verification.

        If the user insert loses a race on the email, the freshly created
        tenant (and with it the team) is deleted again.
        """
        if await self.store.get_user_by_email(email):
            raise ConflictError(EMAIL_TAKEN)

        tenant_id = uuid.uuid4()
        await self.store.add_tenant(Tenant(id=tenant_id, name=tenant_name))
        team = await self.store.add_team(
            Team(id=uuid.uuid4(), name=team_name, tenant_id=tenant_id)
        )
        team_id = team.id
        try:
            user = await self.store.add_user(
                User(
                    id=uuid.uuid4(),
                    email=email,
                    name=name,
                    verified=False,
                    tenant_id=tenant_id,
                    team_id=team_id,
                )
            )
        except ConflictError:
            await self.store.delete_tenant(tenant_id)
            logger.warning("teamguard.register_conflict", tenant_id=str(tenant_id))
            raise ConflictError(EMAIL_TAKEN) from None
        logger.info("teamguard.user_registered", user_id=str(user.id))
        return user

    # ─── Verification (admin) ───────────────────────────

    async def list_unverified(self, actor: Identity) -> list[User]:
        return await self.store.list_users(tenant_id=actor.tenant_id, verified=False)

    async def _tenant_user(self, actor: Identity, user_id: uuid.UUID) -> User:
        user = await self.store.get_user(user_id)
        if user is None or user.tenant_id != actor.tenant_id:
            raise NotFoundError("User not found")
        return user

    async def set_verified(
        self, actor: Identity, user_id: uuid.UUID, verified: bool
    ) -> User:
        """Flip the verified flag.

        Unverifying blocks authentication immediately (authenticate
        re-checks the flag). Existing sessions are only deleted when
        revoke_sessions_on_unverify is on.
        """
        await self._tenant_user(actor, user_id)
        user = await self.store.set_user_verified(user_id, verified)
        if user is None:
            raise NotFoundError("User not found")
        if not verified and self.revoke_sessions_on_unverify:
            await self.store.delete_sessions_for_user(user_id)
        logger.info(
            "teamguard.user_verified" if verified else "teamguard.user_unverified",
            user_id=str(user_id),
            actor_id=str(actor.user_id),
        )
        return user

    # ─── Teams ──────────────────────────────────────────

    async def list_teams(self, actor: Identity) -> list[tuple[Team, int]]:
        """The tenant's teams with their user counts."""
        teams = await self.store.list_teams(actor.tenant_id)
        counts = await self.store.count_users_by_team(actor.tenant_id)
        return [(team, counts.get(team.id, 0)) for team in teams]

    async def get_team(self, actor: Identity, team_id: uuid.UUID) -> Team:
        team = await self.store.get_team(team_id)
        if team is None or team.tenant_id != actor.tenant_id:
            raise NotFoundError("Team not found")
        return team

    async def create_team(self, actor: Identity, name: str) -> Team:
        team = await self.store.add_team(
            Team(id=uuid.uuid4(), name=name, tenant_id=actor.tenant_id)
        )
        logger.info("teamguard.team_created", team_id=str(team.id), actor_id=str(actor.user_id))
        return team

    async def update_team(self, actor: Identity, team_id: uuid.UUID, name: str) -> Team:
        await self.get_team(actor, team_id)
        return await self.store.update_team(team_id, name=name)

    async def delete_team(self, actor: Identity, team_id: uuid.UUID) -> None:
        """Refused for the caller's own team and for teams that still have users."""
        await self.get_team(actor, team_id)
        if team_id == actor.team_id:
            raise ConflictError("Cannot delete your own team")
        counts = await self.store.count_users_by_team(actor.tenant_id)
        if counts.get(team_id):
            raise ConflictError("Cannot delete team with existing users")
        await self.store.delete_team(team_id)
        logger.info("teamguard.team_deleted", team_id=str(team_id), actor_id=str(actor.user_id))

    # ─── Users ──────────────────────────────────────────

    async def list_users(
        self, actor: Identity, team_id: Optional[uuid.UUID] = None
    ) -> list[User]:
        if team_id is not None:
            await self.get_team(actor, team_id)
        return await self.store.list_users(tenant_id=actor.tenant_id, team_id=team_id)

    async def get_user(self, actor: Identity, user_id: uuid.UUID) -> tuple[User, list[Group]]:
        """A user of the tenant together with the groups they belong to."""
        user = await self._tenant_user(actor, user_id)
        return user, await self.store.groups_for_user(user_id)

    async def update_user(
        self,
        actor: Identity,
        user_id: uuid.UUID,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        user = await self._tenant_user(actor, user_id)
        fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if email is not None and email != user.email:
            if await self.store.get_user_by_email(email):
                raise ConflictError(EMAIL_TAKEN)
            fields["email"] = email
        if not fields:
            return user
        try:
            return await self.store.update_user(user_id, **fields)
        except ConflictError:
            raise ConflictError(EMAIL_TAKEN) from None

    async def delete_user(self, actor: Identity, user_id: uuid.UUID) -> None:
        """Delete a user of the tenant; their sessions and memberships go with them."""
        await self._tenant_user(actor, user_id)
        if user_id == actor.user_id:
            raise ConflictError("Cannot delete your own account")
        await self.store.delete_user(user_id)
        logger.info("teamguard.user_deleted", user_id=str(user_id), actor_id=str(actor.user_id))

    # ─── Roles ──────────────────────────────────────────

    async def list_roles(self) -> list[tuple[Role, int]]:
        """Roles with the number of groups each is assigned to."""
        roles = await self.store.list_roles()
        counts = await self.store.role_assignment_counts()
        return [(role, counts.get(role.id, 0)) for role in roles]

    async def get_role(self, role_id: uuid.UUID) -> Role:
        role = await self.store.get_role(role_id)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def create_role(
        self,
        name: str,
        permissions: dict[str, Any],
        description: Optional[str] = None,
    ) -> Role:
        matrix = PermissionMap.from_raw(permissions)
        if await self.store.get_role_by_name(name):
            raise ConflictError(ROLE_NAME_TAKEN)
        try:
            role = await self.store.add_role(
                Role(
                    id=uuid.uuid4(),
                    name=name,
                    description=description,
                    permissions=matrix.to_dict(),
                )
            )
        except ConflictError:
            raise ConflictError(ROLE_NAME_TAKEN) from None
        logger.info("teamguard.role_created", role_id=str(role.id), name=name)
        return role

    async def update_role(
        self,
        role_id: uuid.UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permissions: Optional[dict[str, Any]] = None,
    ) -> Role:
        role = await self.get_role(role_id)
        fields: dict[str, Any] = {}
        if name is not None and name != role.name:
            if await self.store.get_role_by_name(name):
                raise ConflictError(ROLE_NAME_TAKEN)
            fields["name"] = name
        if description is not None:
            fields["description"] = description
        if permissions is not None:
            fields["permissions"] = PermissionMap.from_raw(permissions).to_dict()
        if not fields:
            return role
        try:
            return await self.store.update_role(role_id, **fields)
        except ConflictError:
            raise ConflictError(ROLE_NAME_TAKEN) from None

    async def delete_role(self, role_id: uuid.UUID) -> None:
        await self.get_role(role_id)
        in_use = await self.store.count_role_assignments(role_id)
        if in_use:
            raise ConflictError(
                f"Cannot delete role: it is assigned to {in_use} group(s)"
            )
        await self.store.delete_role(role_id)

    # ─── Groups ─────────────────────────────────────────

    async def list_groups(self, actor: Identity, team_id: uuid.UUID) -> list[Group]:
        await self.get_team(actor, team_id)
        return await self.store.list_groups(team_id)

    async def create_group(
        self,
        actor: Identity,
        team_id: uuid.UUID,
        name: str,
        description: Optional[str] = None,
    ) -> Group:
        await self.get_team(actor, team_id)
        return await self.store.add_group(
            Group(id=uuid.uuid4(), name=name, description=description, team_id=team_id)
        )

    async def get_group(self, actor: Identity, group_id: uuid.UUID) -> Group:
        group = await self.store.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found")
        team = await self.store.get_team(group.team_id)
        if team is None or team.tenant_id != actor.tenant_id:
            raise NotFoundError("Group not found")
        return group

    async def group_details(
        self, actor: Identity, group_id: uuid.UUID
    ) -> tuple[Group, list[Role], list[User]]:
        group = await self.get_group(actor, group_id)
        roles = await self.store.list_group_roles(group_id)
        members = await self.store.list_group_members(group_id)
        return group, roles, members

    async def update_group(
        self,
        actor: Identity,
        group_id: uuid.UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Group:
        group = await self.get_group(actor, group_id)
        fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if description is not None:
            fields["description"] = description
        if not fields:
            return group
        return await self.store.update_group(group_id, **fields)

    async def delete_group(self, actor: Identity, group_id: uuid.UUID) -> None:
        """Members lose whatever the group's roles granted them, immediately."""
        await self.get_group(actor, group_id)
        await self.store.delete_group(group_id)
        logger.info("teamguard.group_deleted", group_id=str(group_id), actor_id=str(actor.user_id))

    async def assign_role(
        self, actor: Identity, group_id: uuid.UUID, role_id: uuid.UUID
    ) -> None:
        await self.get_group(actor, group_id)
        await self.get_role(role_id)
        await self.store.assign_role(group_id, role_id)

    async def unassign_role(
        self, actor: Identity, group_id: uuid.UUID, role_id: uuid.UUID
    ) -> None:
        await self.get_group(actor, group_id)
        await self.store.unassign_role(group_id, role_id)

    async def add_member(
        self, actor: Identity, group_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        """Membership may cross teams within a tenant; it only ever grants
        permissions in the group's own team."""
        await self.get_group(actor, group_id)
        await self._tenant_user(actor, user_id)
        await self.store.add_member(user_id, group_id)

    async def remove_member(
        self, actor: Identity, group_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        await self.get_group(actor, group_id)
        await self.store.remove_member(user_id, group_id)
