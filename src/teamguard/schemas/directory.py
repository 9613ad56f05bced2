"""Pydantic schemas for users, teams, groups, roles and permissions.

Learn: Pydantic v2 models validate request/response data. Separate
"Create" schemas (input) from "Read" schemas (output) for clean APIs.
Permission matrices are typed with the closed Module/Action enums, so
an unknown module or action is rejected with 422 before it reaches
the service layer.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from teamguard.permissions.types import Action, Module, PermissionMap

PermissionMatrix = dict[Module, list[Action]]


def _matrix_to_raw(matrix: PermissionMatrix) -> dict[str, list[str]]:
    return {m.value: [a.value for a in actions] for m, actions in matrix.items()}


# ─── Users ──────────────────────────────────────────────

class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    verified: bool
    tenant_id: uuid.UUID
    team_id: uuid.UUID
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None


class GroupMembership(BaseModel):
    id: uuid.UUID
    name: str
    team_id: uuid.UUID

    model_config = {"from_attributes": True}


class UserDetail(UserRead):
    groups: list[GroupMembership] = []


# ─── Teams ──────────────────────────────────────────────

class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


TeamUpdate = TeamCreate


class TeamRead(BaseModel):
    id: uuid.UUID
    name: str
    tenant_id: uuid.UUID
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TeamSummary(TeamRead):
    user_count: int = 0


class TeamDetail(TeamRead):
    members: list[UserRead] = []
    member_count: int = 0


# ─── Groups ─────────────────────────────────────────────

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class GroupRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    team_id: uuid.UUID
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AssignedRole(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    permissions: dict[str, list[str]]

    model_config = {"from_attributes": True}


class GroupDetail(GroupRead):
    roles: list[AssignedRole] = []
    members: list[UserRead] = []


# ─── Roles ──────────────────────────────────────────────

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: PermissionMatrix = Field(default_factory=dict)

    def raw_permissions(self) -> dict[str, list[str]]:
        return _matrix_to_raw(self.permissions)


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[PermissionMatrix] = None

    def raw_permissions(self) -> Optional[dict[str, list[str]]]:
        if self.permissions is None:
            return None
        return _matrix_to_raw(self.permissions)


class RoleRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    permissions: dict[str, list[str]]
    group_count: int = 0
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ─── Permissions ────────────────────────────────────────

class PermissionMapRead(BaseModel):
    """Every module is always present, possibly with an empty list."""

    vault: list[Action]
    financials: list[Action]
    reporting: list[Action]

    @classmethod
    def from_map(cls, pm: PermissionMap) -> "PermissionMapRead":
        return cls(**pm.to_dict())
