"""Resource service — team-scoped vault secrets, transactions and reports.

Learn: Each module owns one resource table. Every operation runs the
same two checks through the gate: permission for ctx.team_id, then
ownership of the resource by ctx.team_id. New resources are always
created in ctx.team_id, never in a team taken from the payload.
"""

import uuid
from typing import Any

from teamguard.auth.context import RequestContext
from teamguard.db.models import RESOURCE_MODELS, Base
from teamguard.errors import InvalidInputError, NotFoundError
from teamguard.permissions.gate import AccessGate
from teamguard.permissions.types import Action, Module, to_module
from teamguard.store.base import IdentityStore

# Writable fields per module
RESOURCE_FIELDS: dict[Module, tuple[str, ...]] = {
    Module.VAULT: ("name", "value"),
    Module.FINANCIALS: ("amount", "description"),
    Module.REPORTING: ("title", "content"),
}

_NOUNS = {
    Module.VAULT: "Secret",
    Module.FINANCIALS: "Transaction",
    Module.REPORTING: "Report",
}


class ResourceService:
    def __init__(self, store: IdentityStore, gate: AccessGate):
        self.store = store
        self.gate = gate

    @staticmethod
    def _fields(module: Module, data: dict[str, Any]) -> dict[str, Any]:
        allowed = RESOURCE_FIELDS[module]
        unknown = set(data) - set(allowed)
        if unknown:
            raise InvalidInputError(
                f"Unknown field(s) for {module.value}: {', '.join(sorted(unknown))}"
            )
        return {k: v for k, v in data.items() if v is not None}

    async def _owned(
        self, ctx: RequestContext, module: Module, resource_id: uuid.UUID
    ) -> Base:
        resource = await self.store.get_resource(module.value, resource_id)
        if resource is None:
            raise NotFoundError(f"{_NOUNS[module]} not found")
        self.gate.verify_team_ownership(resource.team_id, ctx.team_id)
        return resource

    async def list_resources(self, ctx: RequestContext, module: Module | str) -> list[Base]:
        module = to_module(module)
        await self.gate.authorize(ctx, module, Action.READ)
        return await self.store.list_resources(module.value, ctx.team_id)

    async def get(
        self, ctx: RequestContext, module: Module | str, resource_id: uuid.UUID
    ) -> Base:
        module = to_module(module)
        await self.gate.authorize(ctx, module, Action.READ)
        return await self._owned(ctx, module, resource_id)

    async def create(
        self, ctx: RequestContext, module: Module | str, data: dict[str, Any]
    ) -> Base:
        module = to_module(module)
        await self.gate.authorize(ctx, module, Action.CREATE)
        fields = self._fields(module, data)
        missing = [f for f in RESOURCE_FIELDS[module] if f not in fields]
        if missing:
            raise InvalidInputError(f"Missing field(s): {', '.join(missing)}")
        model = RESOURCE_MODELS[module.value]
        resource = model(
            id=uuid.uuid4(),
            team_id=ctx.team_id,
            created_by=ctx.user_id,
            **fields,
        )
        return await self.store.add_resource(module.value, resource)

    async def update(
        self,
        ctx: RequestContext,
        module: Module | str,
        resource_id: uuid.UUID,
        data: dict[str, Any],
    ) -> Base:
        module = to_module(module)
        await self.gate.authorize(ctx, module, Action.UPDATE)
        await self._owned(ctx, module, resource_id)
        fields = self._fields(module, data)
        return await self.store.update_resource(module.value, resource_id, **fields)

    async def delete(
        self, ctx: RequestContext, module: Module | str, resource_id: uuid.UUID
    ) -> None:
        module = to_module(module)
        await self.gate.authorize(ctx, module, Action.DELETE)
        await self._owned(ctx, module, resource_id)
        await self.store.delete_resource(module.value, resource_id)
