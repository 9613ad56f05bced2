"""End-to-end flows through the core components, no HTTP.

Learn: Three scenarios exercise the whole chain (store → tokens →
sessions → resolver → gate):

1. A verified admin logs in by passwordless link and can delete in the vault
2. A pending (unverified) user is refused whatever credential they hold
3. A Team A member citing Team A's id cannot reach a Team B resource
"""

import uuid

import pytest

from conftest import make_role, make_user
from teamguard.auth.context import Credential
from teamguard.auth.sessions import SessionManager
from teamguard.db.models import Group, Team, Tenant
from teamguard.errors import ForbiddenError, UnverifiedAccountError
from teamguard.permissions import AccessGate


@pytest.mark.asyncio
async def test_admin_login_and_vault_delete(store):
    tenant = await store.add_tenant(Tenant(id=uuid.uuid4(), name="Acme"))
    engineering = await store.add_team(
        Team(id=uuid.uuid4(), name="Engineering", tenant_id=tenant.id)
    )
    admin = await make_user(store, "admin@acme.com", tenant, engineering)
    full = ["create", "read", "update", "delete"]
    role = await make_role(
        store, "Admin", {"vault": full, "financials": full, "reporting": full}
    )
    group = await store.add_group(
        Group(id=uuid.uuid4(), name="Engineering Admins", team_id=engineering.id)
    )
    await store.assign_role(group.id, role.id)
    await store.add_member(admin.id, group.id)

    sessions = SessionManager(store)
    link = await sessions.issuer.issue_passwordless_token("admin@acme.com")
    identity, session_token = await sessions.login_with_passwordless(link)
    assert identity.user_id == admin.id

    identity = await sessions.authenticate(Credential.session(session_token))
    gate = AccessGate(store)
    assert await gate.has_permission(identity.user_id, engineering.id, "vault", "delete")


@pytest.mark.asyncio
async def test_pending_user_is_refused(store, acme):
    pending = await make_user(store, "pending@acme.com", acme.tenant, acme.team_a, verified=False)
    sessions = SessionManager(store)

    session_token = await sessions.create_session(pending.id)
    with pytest.raises(UnverifiedAccountError):
        await sessions.authenticate(Credential.session(session_token))

    link = await sessions.issuer.issue_passwordless_token("pending@acme.com")
    with pytest.raises(UnverifiedAccountError):
        await sessions.authenticate(Credential.passwordless(link))


@pytest.mark.asyncio
async def test_cross_team_resource_is_blocked(store, acme):
    gate = AccessGate(store)
    assert await gate.has_permission(acme.alice.id, acme.team_a.id, "financials", "read")

    with pytest.raises(ForbiddenError):
        gate.verify_team_ownership(acme.team_b.id, acme.team_a.id)
