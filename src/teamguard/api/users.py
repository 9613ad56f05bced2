"""User directory API routes.

Lists, reads, edits and deletes the users of the caller's tenant. A
user id from another tenant is a 404. Group membership itself is
managed from the group side (/groups/{id}/members/{user_id}).
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from teamguard.auth.context import Identity
from teamguard.auth.dependencies import get_current_identity, get_store
from teamguard.schemas.directory import GroupMembership, UserDetail, UserRead, UserUpdate
from teamguard.services.directory_service import DirectoryService
from teamguard.store.base import IdentityStore

router = APIRouter(prefix="/users")


def _svc(store: IdentityStore = Depends(get_store)) -> DirectoryService:
    return DirectoryService(store)


@router.get("", response_model=list[UserRead])
async def list_users(
    team_id: Optional[uuid.UUID] = Query(None, description="Only users of this team"),
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.list_users(identity, team_id)


@router.get("/{user_id}", response_model=UserDetail)
async def get_user(
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    user, groups = await svc.get_user(identity, user_id)
    return UserDetail(
        **UserRead.model_validate(user).model_dump(),
        groups=[GroupMembership.model_validate(g) for g in groups],
    )


@router.put("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.update_user(identity, user_id, name=body.name, email=body.email)


@router.delete("/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    """Delete a user. Refused (409) for your own account."""
    await svc.delete_user(identity, user_id)
    return {"deleted": True}
