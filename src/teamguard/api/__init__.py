"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Health and auth routers are open. Admin, role, team and user
routers need a verified session (applied at include_router level with
get_current_identity). Resource routers take their identity from the
RequestContext dependency on every handler, which also carries team_id.
"""

from fastapi import APIRouter, Depends

from teamguard.api.admin import router as admin_router
from teamguard.api.auth import router as auth_router
from teamguard.api.health import router as health_router
from teamguard.api.resources import financials_router, reporting_router, vault_router
from teamguard.api.roles import router as roles_router
from teamguard.api.teams import router as teams_router
from teamguard.api.users import router as users_router
from teamguard.auth.dependencies import get_current_identity

_auth = [Depends(get_current_identity)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no session required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Session required
api_router.include_router(admin_router, tags=["admin"], dependencies=_auth)
api_router.include_router(roles_router, tags=["roles"], dependencies=_auth)
api_router.include_router(teams_router, tags=["teams", "groups", "permissions"], dependencies=_auth)
api_router.include_router(users_router, tags=["users"], dependencies=_auth)

# Session + team-scoped permission + resource ownership
api_router.include_router(vault_router, tags=["vault"])
api_router.include_router(financials_router, tags=["financials"])
api_router.include_router(reporting_router, tags=["reporting"])
