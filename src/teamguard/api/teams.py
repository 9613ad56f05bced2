"""Team, group and permission API routes.

Learn: FastAPI routers define HTTP endpoints. Each route function
receives dependencies (store, identity) via Depends() and delegates
to the service layer. Every lookup is scoped to the caller's tenant;
anything outside it is a 404.
"""

import uuid

from fastapi import APIRouter, Depends, Query

from teamguard.auth.context import Identity
from teamguard.auth.dependencies import get_current_identity, get_gate, get_store
from teamguard.permissions.gate import AccessGate
from teamguard.permissions.types import Action, Module
from teamguard.schemas.directory import (
    AssignedRole,
    GroupCreate,
    GroupDetail,
    GroupRead,
    GroupUpdate,
    PermissionMapRead,
    TeamCreate,
    TeamDetail,
    TeamRead,
    TeamSummary,
    TeamUpdate,
    UserRead,
)
from teamguard.services.directory_service import DirectoryService
from teamguard.store.base import IdentityStore

router = APIRouter()


def _svc(store: IdentityStore = Depends(get_store)) -> DirectoryService:
    return DirectoryService(store)


# ─── Teams ──────────────────────────────────────────────

@router.get("/teams", response_model=list[TeamSummary])
async def list_teams(
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    """Teams of the caller's tenant, each with its user count."""
    return [
        TeamSummary(**TeamRead.model_validate(team).model_dump(), user_count=count)
        for team, count in await svc.list_teams(identity)
    ]


@router.post("/teams", response_model=TeamRead, status_code=201)
async def create_team(
    body: TeamCreate,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.create_team(identity, body.name)


@router.get("/teams/{team_id}", response_model=TeamDetail)
async def get_team(
    team_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    team = await svc.get_team(identity, team_id)
    members = [UserRead.model_validate(u) for u in await svc.list_users(identity, team_id)]
    return TeamDetail(
        **TeamRead.model_validate(team).model_dump(),
        members=members,
        member_count=len(members),
    )


@router.put("/teams/{team_id}", response_model=TeamRead)
async def update_team(
    team_id: uuid.UUID,
    body: TeamUpdate,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.update_team(identity, team_id, body.name)


@router.delete("/teams/{team_id}")
async def delete_team(
    team_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    """Refused (409) for your own team and for a team that still has users."""
    await svc.delete_team(identity, team_id)
    return {"deleted": True}


# ─── Groups ─────────────────────────────────────────────

@router.get("/teams/{team_id}/groups", response_model=list[GroupRead])
async def list_groups(
    team_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.list_groups(identity, team_id)


@router.post("/teams/{team_id}/groups", response_model=GroupRead, status_code=201)
async def create_group(
    team_id: uuid.UUID,
    body: GroupCreate,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.create_group(
        identity, team_id, name=body.name, description=body.description
    )


@router.get("/groups/{group_id}", response_model=GroupDetail)
async def get_group(
    group_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    """A group with its assigned roles and its members."""
    group, roles, members = await svc.group_details(identity, group_id)
    return GroupDetail(
        **GroupRead.model_validate(group).model_dump(),
        roles=[AssignedRole.model_validate(r) for r in roles],
        members=[UserRead.model_validate(u) for u in members],
    )


@router.put("/groups/{group_id}", response_model=GroupRead)
async def update_group(
    group_id: uuid.UUID,
    body: GroupUpdate,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.update_group(
        identity, group_id, name=body.name, description=body.description
    )


@router.delete("/groups/{group_id}")
async def delete_group(
    group_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    await svc.delete_group(identity, group_id)
    return {"deleted": True}


@router.post("/groups/{group_id}/roles/{role_id}", status_code=204)
async def assign_role(
    group_id: uuid.UUID,
    role_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    await svc.assign_role(identity, group_id, role_id)


@router.delete("/groups/{group_id}/roles/{role_id}", status_code=204)
async def unassign_role(
    group_id: uuid.UUID,
    role_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    await svc.unassign_role(identity, group_id, role_id)


@router.post("/groups/{group_id}/members/{user_id}", status_code=204)
async def add_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    await svc.add_member(identity, group_id, user_id)


@router.delete("/groups/{group_id}/members/{user_id}", status_code=204)
async def remove_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    await svc.remove_member(identity, group_id, user_id)


# ─── Permissions ────────────────────────────────────────

@router.get("/teams/{team_id}/permissions/{user_id}", response_model=PermissionMapRead)
async def get_permissions(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
    gate: AccessGate = Depends(get_gate),
):
    """Resolved permission map of a user within a team."""
    await svc.get_team(identity, team_id)
    return PermissionMapRead.from_map(await gate.permissions(user_id, team_id))


@router.get("/teams/{team_id}/permissions/{user_id}/check")
async def check_permission(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    module: Module = Query(...),
    action: Action = Query(...),
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
    gate: AccessGate = Depends(get_gate),
):
    await svc.get_team(identity, team_id)
    allowed = await gate.has_permission(user_id, team_id, module, action)
    return {"module": module.value, "action": action.value, "allowed": allowed}
