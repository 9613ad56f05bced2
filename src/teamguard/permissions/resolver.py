"""Permission resolver — effective permissions of a user within one team.

Learn: The traversal is user → groups (only those in the target team) →
roles → permission matrices, merged by pure set union. A group in
another team never contributes, even if the user is a member of it.

The store does the traversal in ONE batched lookup; the resolver only
parses and merges. Every authorized request goes through here, so it
must stay read-only and free of per-group queries.
"""

import uuid

from teamguard.permissions.types import PermissionMap
from teamguard.store.base import IdentityStore


class PermissionResolver:
    """Read-only; safe to call repeatedly and concurrently."""

    def __init__(self, store: IdentityStore):
        self.store = store

    async def resolve(self, user_id: uuid.UUID, team_id: uuid.UUID) -> PermissionMap:
        """Union of every role reachable through the user's groups in team_id.

        Zero groups (or zero roles) is not an error — the result is the
        all-empty map. A stored matrix with an unknown module/action
        raises InvalidPermissionError instead of being partially applied.
        """
        matrices = await self.store.role_permissions_for(user_id, team_id)
        return PermissionMap.merge(PermissionMap.from_raw(m) for m in matrices)
