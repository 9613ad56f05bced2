"""Test fixtures — a fresh in-memory identity store per test.

Learn: Testing pattern for the core + FastAPI:

1. Each test gets its own InMemoryIdentityStore (function-scoped), so
   there is no cross-test pollution and no database is needed.
2. The HTTP client overrides the app's get_store dependency with that
   same store. Everything a test seeds directly is visible to the API.
3. Unlike a mocked identity, sessions are real: `login()` creates a
   session through SessionManager and returns Bearer headers, so the
   full authenticate → verified check → permission pipeline runs.

The `acme` fixture seeds one tenant with two teams:

    Team A  group "Finance"  → roles "Finance Reader" (financials: read)
                                      "Reporter"       (reporting: all)
    Team B  group "Ops"      → role  "Vault Admin"     (vault: all)

alice (verified, home team A) is in both groups; bob (unverified,
home team A) is in none.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from teamguard.auth.dependencies import get_store
from teamguard.auth.sessions import SessionManager
from teamguard.db.models import Group, Role, Team, Tenant, User, utcnow
from teamguard.main import app
from teamguard.store.memory import InMemoryIdentityStore


class FakeClock:
    """Controllable clock for expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class Acme:
    tenant: Tenant
    team_a: Team
    team_b: Team
    alice: User
    bob: User
    finance: Group
    ops: Group
    finance_reader: Role
    reporter: Role
    vault_admin: Role


async def make_user(
    store: InMemoryIdentityStore,
    email: str,
    tenant: Tenant,
    team: Team,
    verified: bool = True,
) -> User:
    return await store.add_user(
        User(
            id=uuid.uuid4(),
            email=email,
            name=email.split("@")[0].title(),
            verified=verified,
            tenant_id=tenant.id,
            team_id=team.id,
        )
    )


async def make_role(store: InMemoryIdentityStore, name: str, permissions: dict) -> Role:
    return await store.add_role(Role(id=uuid.uuid4(), name=name, permissions=permissions))


async def login(store: InMemoryIdentityStore, user: User) -> dict[str, str]:
    """Open a real session for user and return Bearer headers."""
    token = await SessionManager(store).create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def store():
    return InMemoryIdentityStore()


@pytest_asyncio.fixture()
async def clock():
    return FakeClock()


@pytest_asyncio.fixture()
async def acme(store) -> Acme:
    tenant = await store.add_tenant(Tenant(id=uuid.uuid4(), name="Acme"))
    team_a = await store.add_team(Team(id=uuid.uuid4(), name="Team A", tenant_id=tenant.id))
    team_b = await store.add_team(Team(id=uuid.uuid4(), name="Team B", tenant_id=tenant.id))

    alice = await make_user(store, "alice@acme.com", tenant, team_a)
    bob = await make_user(store, "bob@acme.com", tenant, team_a, verified=False)

    finance_reader = await make_role(store, "Finance Reader", {"financials": ["read"]})
    reporter = await make_role(
        store, "Reporter", {"reporting": ["create", "read", "update", "delete"]}
    )
    vault_admin = await make_role(
        store, "Vault Admin", {"vault": ["create", "read", "update", "delete"]}
    )

    finance = await store.add_group(Group(id=uuid.uuid4(), name="Finance", team_id=team_a.id))
    ops = await store.add_group(Group(id=uuid.uuid4(), name="Ops", team_id=team_b.id))

    await store.assign_role(finance.id, finance_reader.id)
    await store.assign_role(finance.id, reporter.id)
    await store.assign_role(ops.id, vault_admin.id)
    await store.add_member(alice.id, finance.id)
    await store.add_member(alice.id, ops.id)

    return Acme(
        tenant=tenant,
        team_a=team_a,
        team_b=team_b,
        alice=alice,
        bob=bob,
        finance=finance,
        ops=ops,
        finance_reader=finance_reader,
        reporter=reporter,
        vault_admin=vault_admin,
    )


@pytest_asyncio.fixture()
async def client(store):
    """HTTP client with get_store overridden by the per-test in-memory store.

    Learn: Overriding get_store also cuts get_db out of the dependency
    graph, so no request ever opens a database connection. Rate limiting
    is skipped because the lifespan (and with it Redis) never starts
    under ASGITransport.
    """

    def override_get_store():
        return store

    app.dependency_overrides[get_store] = override_get_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def alice_headers(store, acme) -> dict[str, str]:
    return await login(store, acme.alice)
