"""Access decision gate — allow/deny answers and team-ownership checks.

Learn: Two independent checks guard every team-scoped operation:

1. "Does the caller hold module:action in team T?"  (has_permission)
2. "Does the resource actually belong to team T?"    (verify_team_ownership)

Either one alone leaks: a user with financials:read in Team A could
otherwise read a Team B record just by citing Team A's id. authorize()
pairs them so route code cannot forget the second half.
"""

import uuid
from typing import Optional

from teamguard.auth.context import RequestContext
from teamguard.errors import ForbiddenError
from teamguard.permissions.resolver import PermissionResolver
from teamguard.permissions.types import Action, Module, PermissionMap, to_action, to_module
from teamguard.store.base import IdentityStore


def verify_team_ownership(
    resource_team_id: uuid.UUID, requested_team_id: uuid.UUID
) -> None:
    """Raise ForbiddenError unless the resource belongs to the requested team."""
    if resource_team_id != requested_team_id:
        raise ForbiddenError("Resource belongs to a different team")


class AccessGate:
    def __init__(self, store: IdentityStore, resolver: Optional[PermissionResolver] = None):
        self.store = store
        self.resolver = resolver or PermissionResolver(store)

    async def permissions(self, user_id: uuid.UUID, team_id: uuid.UUID) -> PermissionMap:
        return await self.resolver.resolve(user_id, team_id)

    async def has_permission(
        self,
        user_id: uuid.UUID,
        team_id: uuid.UUID,
        module: Module | str,
        action: Action | str,
    ) -> bool:
        """Same answer as resolve(user, team)[module] containing action.

        Computes the full union rather than stopping at the first role,
        so the decision can never diverge from the resolved map.
        """
        module, action = to_module(module), to_action(action)
        resolved = await self.resolver.resolve(user_id, team_id)
        return resolved.allows(module, action)

    async def has_module_access(
        self, user_id: uuid.UUID, team_id: uuid.UUID, module: Module | str
    ) -> bool:
        module = to_module(module)
        resolved = await self.resolver.resolve(user_id, team_id)
        return bool(resolved[module])

    async def require_permission(
        self,
        user_id: uuid.UUID,
        team_id: uuid.UUID,
        module: Module | str,
        action: Action | str,
    ) -> None:
        module, action = to_module(module), to_action(action)
        if not await self.has_permission(user_id, team_id, module, action):
            raise ForbiddenError(f"Missing {module.value}:{action.value} permission")

    verify_team_ownership = staticmethod(verify_team_ownership)

    async def authorize(
        self,
        ctx: RequestContext,
        module: Module | str,
        action: Action | str,
        resource_team_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Permission check for ctx.team_id, plus ownership when a resource is involved."""
        await self.require_permission(ctx.user_id, ctx.team_id, module, action)
        if resource_team_id is not None:
            verify_team_ownership(resource_team_id, ctx.team_id)
