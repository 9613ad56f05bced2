"""Admin API — account verification.

Verification is scoped to the admin's own tenant. Unverifying takes
effect on the user's next request: authenticate() re-checks the flag.
"""

import uuid

from fastapi import APIRouter, Depends

from teamguard.auth.context import Identity
from teamguard.auth.dependencies import get_current_identity, get_store
from teamguard.config import settings
from teamguard.schemas.directory import UserRead
from teamguard.services.directory_service import DirectoryService
from teamguard.store.base import IdentityStore

router = APIRouter(prefix="/admin")


def _svc(store: IdentityStore = Depends(get_store)) -> DirectoryService:
    return DirectoryService(
        store, revoke_sessions_on_unverify=settings.revoke_sessions_on_unverify
    )


@router.get("/users/unverified", response_model=list[UserRead])
async def list_unverified(
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.list_unverified(identity)


@router.post("/users/{user_id}/verify", response_model=UserRead)
async def verify_user(
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.set_verified(identity, user_id, True)


@router.post("/users/{user_id}/unverify", response_model=UserRead)
async def unverify_user(
    user_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    svc: DirectoryService = Depends(_svc),
):
    return await svc.set_verified(identity, user_id, False)
