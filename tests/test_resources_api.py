"""Team-scoped resources — vault, financials, reporting.

Learn: Every resource route runs two checks: the caller's permission in
?team_id=, and the resource's ownership by that same team. The key
scenario: alice holds financials:read in Team A. A Team B transaction
must stay closed to her even when she cites Team A's id.
"""

import uuid

import pytest

from conftest import login, make_role
from teamguard.db.models import FinancialTransaction, Report, VaultSecret


async def _team_b_transaction(store, acme) -> FinancialTransaction:
    return await store.add_resource(
        "financials",
        FinancialTransaction(
            id=uuid.uuid4(),
            amount="1200.00",
            description="Team B payroll",
            team_id=acme.team_b.id,
            created_by=acme.alice.id,
        ),
    )


# ═══════════════════════════════════════════════════════════
# Permission + ownership
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_team_id_is_required(client, acme, alice_headers):
    r = await client.get("/api/v1/financials", headers=alice_headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_resources_need_session(client, acme):
    r = await client.get("/api/v1/financials", params={"team_id": str(acme.team_a.id)})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_list_with_read_permission(client, store, acme, alice_headers):
    await _team_b_transaction(store, acme)
    r = await client.get(
        "/api/v1/financials", params={"team_id": str(acme.team_a.id)}, headers=alice_headers
    )
    assert r.status_code == 200
    # Team B's record never shows up in a Team A listing
    assert r.json() == []


@pytest.mark.asyncio
async def test_cross_team_record_is_forbidden(client, store, acme, alice_headers):
    """Permission in Team A does not open a record owned by Team B."""
    tx = await _team_b_transaction(store, acme)

    check = await client.get(
        f"/api/v1/teams/{acme.team_a.id}/permissions/{acme.alice.id}/check",
        params={"module": "financials", "action": "read"},
        headers=alice_headers,
    )
    assert check.json()["allowed"] is True

    r = await client.get(
        f"/api/v1/financials/{tx.id}",
        params={"team_id": str(acme.team_a.id)},
        headers=alice_headers,
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Resource belongs to a different team"


@pytest.mark.asyncio
async def test_cross_team_write_is_forbidden(client, store, acme, alice_headers):
    """Reporter in Team A cannot update or delete a Team B report."""
    report = await store.add_resource(
        "reporting",
        Report(
            id=uuid.uuid4(),
            title="B quarterly",
            content="...",
            team_id=acme.team_b.id,
            created_by=acme.alice.id,
        ),
    )
    params = {"team_id": str(acme.team_a.id)}
    r = await client.put(
        f"/api/v1/reporting/{report.id}", params=params, json={"title": "Hijacked"},
        headers=alice_headers,
    )
    assert r.status_code == 403
    r = await client.delete(f"/api/v1/reporting/{report.id}", params=params, headers=alice_headers)
    assert r.status_code == 403
    assert (await store.get_resource("reporting", report.id)).title == "B quarterly"


@pytest.mark.asyncio
async def test_missing_action_is_forbidden(client, acme, alice_headers):
    r = await client.post(
        "/api/v1/financials",
        params={"team_id": str(acme.team_a.id)},
        json={"amount": "10.00", "description": "Coffee"},
        headers=alice_headers,
    )
    assert r.status_code == 403
    assert r.json()["detail"] == "Missing financials:create permission"


@pytest.mark.asyncio
async def test_permission_in_other_team_does_not_apply(client, acme, alice_headers):
    """alice is Vault Admin in Team B only."""
    r = await client.get(
        "/api/v1/vault", params={"team_id": str(acme.team_a.id)}, headers=alice_headers
    )
    assert r.status_code == 403

    r = await client.get(
        "/api/v1/vault", params={"team_id": str(acme.team_b.id)}, headers=alice_headers
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_unverified_user_is_refused(client, store, acme, alice_headers):
    await store.set_user_verified(acme.alice.id, False)
    r = await client.get(
        "/api/v1/financials", params={"team_id": str(acme.team_a.id)}, headers=alice_headers
    )
    assert r.status_code == 403
    assert r.json()["kind"] == "unverified"


# ═══════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_report_crud(client, store, acme, alice_headers):
    params = {"team_id": str(acme.team_a.id)}
    r = await client.post(
        "/api/v1/reporting",
        params=params,
        json={"title": "Q3", "content": "Revenue up"},
        headers=alice_headers,
    )
    assert r.status_code == 201
    report = r.json()
    assert report["team_id"] == str(acme.team_a.id)
    assert report["created_by"] == str(acme.alice.id)

    r = await client.put(
        f"/api/v1/reporting/{report['id']}",
        params=params,
        json={"content": "Revenue way up"},
        headers=alice_headers,
    )
    assert r.status_code == 200
    assert r.json()["title"] == "Q3"
    assert r.json()["content"] == "Revenue way up"

    r = await client.get("/api/v1/reporting", params=params, headers=alice_headers)
    assert [item["id"] for item in r.json()] == [report["id"]]

    r = await client.delete(f"/api/v1/reporting/{report['id']}", params=params, headers=alice_headers)
    assert r.status_code == 200
    r = await client.get(f"/api/v1/reporting/{report['id']}", params=params, headers=alice_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_created_resource_belongs_to_context_team(client, store, acme, alice_headers):
    """A team_id smuggled into the body is ignored."""
    r = await client.post(
        "/api/v1/reporting",
        params={"team_id": str(acme.team_a.id)},
        json={"title": "Sneaky", "content": "x", "team_id": str(acme.team_b.id)},
        headers=alice_headers,
    )
    assert r.status_code == 201
    assert r.json()["team_id"] == str(acme.team_a.id)


@pytest.mark.asyncio
async def test_vault_list_hides_values(client, store, acme, alice_headers):
    params = {"team_id": str(acme.team_b.id)}
    r = await client.post(
        "/api/v1/vault",
        params=params,
        json={"name": "db-password", "value": "hunter2"},
        headers=alice_headers,
    )
    assert r.status_code == 201
    secret_id = r.json()["id"]

    r = await client.get("/api/v1/vault", params=params, headers=alice_headers)
    assert r.json()[0]["name"] == "db-password"
    assert "value" not in r.json()[0]

    r = await client.get(f"/api/v1/vault/{secret_id}", params=params, headers=alice_headers)
    assert r.json()["value"] == "hunter2"
    assert isinstance(await store.get_resource("vault", uuid.UUID(secret_id)), VaultSecret)


@pytest.mark.asyncio
async def test_transaction_amount_round_trips_as_string(client, store, acme):
    writer = await make_role(store, "Finance Writer", {"financials": ["create", "read"]})
    await store.assign_role(acme.finance.id, writer.id)
    headers = await login(store, acme.alice)

    r = await client.post(
        "/api/v1/financials",
        params={"team_id": str(acme.team_a.id)},
        json={"amount": "1234.50", "description": "Invoice 17"},
        headers=headers,
    )
    assert r.status_code == 201
    assert r.json()["amount"] == "1234.50"


@pytest.mark.asyncio
async def test_unknown_resource_is_not_found(client, acme, alice_headers):
    r = await client.get(
        f"/api/v1/financials/{uuid.uuid4()}",
        params={"team_id": str(acme.team_a.id)},
        headers=alice_headers,
    )
    assert r.status_code == 404
