"""Pydantic schemas for team-scoped resources (one pair per module).

Learn: Create schemas carry no team_id — the team always comes from the
request context. Vault secret values are only returned by the
single-secret endpoint, never by list endpoints.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class _ResourceRead(BaseModel):
    id: uuid.UUID
    team_id: uuid.UUID
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ─── Vault ──────────────────────────────────────────────

class SecretCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    value: str = Field(..., min_length=1)


class SecretUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    value: Optional[str] = Field(None, min_length=1)


class SecretSummary(_ResourceRead):
    name: str


class SecretRead(SecretSummary):
    value: str


# ─── Financials ─────────────────────────────────────────

class TransactionCreate(BaseModel):
    amount: Decimal
    description: str = Field(..., min_length=1)


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = None
    description: Optional[str] = Field(None, min_length=1)


class TransactionRead(_ResourceRead):
    amount: str
    description: str


# ─── Reporting ──────────────────────────────────────────

class ReportCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str


class ReportUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = None


class ReportRead(_ResourceRead):
    title: str
    content: str
