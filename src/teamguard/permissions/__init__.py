"""Permission resolution and enforcement.

Learn: Three layers, leaf to root:
1. types    → closed Module/Action enums and the typed PermissionMap
2. resolver → user → groups (in team) → roles → merged PermissionMap
3. gate     → allow/deny decisions + resource team-ownership checks
"""

from teamguard.permissions.gate import AccessGate, verify_team_ownership
from teamguard.permissions.resolver import PermissionResolver
from teamguard.permissions.types import Action, Module, PermissionMap

__all__ = [
    "AccessGate",
    "Action",
    "Module",
    "PermissionMap",
    "PermissionResolver",
    "verify_team_ownership",
]
