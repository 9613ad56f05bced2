"""Role API routes.

Roles are global permission templates. The request schema already
restricts modules/actions to the closed sets; the service re-validates
through PermissionMap before anything is stored.
"""

import uuid

from fastapi import APIRouter, Depends

from teamguard.auth.dependencies import get_store
from teamguard.schemas.directory import RoleCreate, RoleRead, RoleUpdate
from teamguard.services.directory_service import DirectoryService
from teamguard.store.base import IdentityStore

router = APIRouter(prefix="/roles")


def _svc(store: IdentityStore = Depends(get_store)) -> DirectoryService:
    return DirectoryService(store)


def _read(role, group_count: int = 0) -> RoleRead:
    return RoleRead(
        id=role.id,
        name=role.name,
        description=role.description,
        permissions=role.permissions,
        group_count=group_count,
        created_at=role.created_at,
    )


@router.get("", response_model=list[RoleRead])
async def list_roles(svc: DirectoryService = Depends(_svc)):
    return [_read(role, count) for role, count in await svc.list_roles()]


@router.post("", response_model=RoleRead, status_code=201)
async def create_role(body: RoleCreate, svc: DirectoryService = Depends(_svc)):
    role = await svc.create_role(
        name=body.name,
        description=body.description,
        permissions=body.raw_permissions(),
    )
    return _read(role)


@router.get("/{role_id}", response_model=RoleRead)
async def get_role(role_id: uuid.UUID, svc: DirectoryService = Depends(_svc)):
    role = await svc.get_role(role_id)
    return _read(role, await svc.store.count_role_assignments(role_id))


@router.put("/{role_id}", response_model=RoleRead)
async def update_role(
    role_id: uuid.UUID, body: RoleUpdate, svc: DirectoryService = Depends(_svc)
):
    role = await svc.update_role(
        role_id,
        name=body.name,
        description=body.description,
        permissions=body.raw_permissions(),
    )
    return _read(role, await svc.store.count_role_assignments(role_id))


@router.delete("/{role_id}")
async def delete_role(role_id: uuid.UUID, svc: DirectoryService = Depends(_svc)):
    """Delete a role. Refused (409) while any group still has it."""
    await svc.delete_role(role_id)
    return {"deleted": True}
