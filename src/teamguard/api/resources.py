"""Team-scoped resource routes: /vault, /financials, /reporting.

Learn: The three modules share one route shape, so the routers are
built by a factory. Every route takes `?team_id=` and builds a typed
RequestContext; the resource service then runs BOTH checks — the
caller's permission in team_id and the resource's ownership by team_id.
"""

import uuid
from typing import Type

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from teamguard.auth.context import RequestContext
from teamguard.auth.dependencies import get_gate, get_request_context, get_store
from teamguard.permissions.gate import AccessGate
from teamguard.permissions.types import Module
from teamguard.schemas.resource import (
    ReportCreate,
    ReportRead,
    ReportUpdate,
    SecretCreate,
    SecretRead,
    SecretSummary,
    SecretUpdate,
    TransactionCreate,
    TransactionRead,
    TransactionUpdate,
)
from teamguard.services.resource_service import ResourceService
from teamguard.store.base import IdentityStore


def _svc(
    store: IdentityStore = Depends(get_store),
    gate: AccessGate = Depends(get_gate),
) -> ResourceService:
    return ResourceService(store, gate)


def build_module_router(
    module: Module,
    create_schema: Type[BaseModel],
    update_schema: Type[BaseModel],
    read_schema: Type[BaseModel],
    summary_schema: Type[BaseModel],
) -> APIRouter:
    router = APIRouter(prefix=f"/{module.value}")

    @router.get("", response_model=list[summary_schema])
    async def list_items(
        ctx: RequestContext = Depends(get_request_context),
        svc: ResourceService = Depends(_svc),
    ):
        return await svc.list_resources(ctx, module)

    @router.post("", response_model=read_schema, status_code=201)
    async def create_item(
        body: create_schema,
        ctx: RequestContext = Depends(get_request_context),
        svc: ResourceService = Depends(_svc),
    ):
        return await svc.create(ctx, module, body.model_dump(mode="json"))

    @router.get("/{item_id}", response_model=read_schema)
    async def get_item(
        item_id: uuid.UUID,
        ctx: RequestContext = Depends(get_request_context),
        svc: ResourceService = Depends(_svc),
    ):
        return await svc.get(ctx, module, item_id)

    @router.put("/{item_id}", response_model=read_schema)
    async def update_item(
        item_id: uuid.UUID,
        body: update_schema,
        ctx: RequestContext = Depends(get_request_context),
        svc: ResourceService = Depends(_svc),
    ):
        data = body.model_dump(mode="json", exclude_none=True)
        return await svc.update(ctx, module, item_id, data)

    @router.delete("/{item_id}")
    async def delete_item(
        item_id: uuid.UUID,
        ctx: RequestContext = Depends(get_request_context),
        svc: ResourceService = Depends(_svc),
    ):
        await svc.delete(ctx, module, item_id)
        return {"deleted": True}

    return router


vault_router = build_module_router(
    Module.VAULT, SecretCreate, SecretUpdate, SecretRead, SecretSummary
)
financials_router = build_module_router(
    Module.FINANCIALS, TransactionCreate, TransactionUpdate, TransactionRead, TransactionRead
)
reporting_router = build_module_router(
    Module.REPORTING, ReportCreate, ReportUpdate, ReportRead, ReportRead
)
