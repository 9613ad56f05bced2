"""Auth API — registration, passwordless login, sessions.

Learn: Tests cover:
1. User registration + duplicate prevention
2. Login link requests (verified vs unverified vs unknown)
3. Token verification → session cookie + body
4. Protected /me endpoint (Bearer and cookie)
5. Logout and unverify while a session is live
"""

import pytest

from conftest import login
from teamguard.auth.tokens import TokenIssuer
from teamguard.config import settings


async def _login_token(store, email: str) -> str:
    return await TokenIssuer(store).issue_passwordless_token(email)


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client, store):
    """Registration creates an unverified user in a new tenant + team."""
    r = await client.post(
        "/api/v1/auth/register",
        json={
            "email": "dana@globex.com",
            "name": "Dana",
            "tenant_name": "Globex",
            "team_name": "Research",
        },
    )
    assert r.status_code == 201
    assert "verification" in r.json()["message"]

    user = await store.get_user_by_email("dana@globex.com")
    assert str(user.id) == r.json()["user_id"]
    assert user.verified is False
    team = await store.get_team(user.team_id)
    assert team.name == "Research"
    assert team.tenant_id == user.tenant_id


@pytest.mark.asyncio
async def test_register_duplicate_email(client, acme):
    r = await client.post(
        "/api/v1/auth/register",
        json={
            "email": "alice@acme.com",
            "name": "Alice Again",
            "tenant_name": "Other",
            "team_name": "Other",
        },
    )
    assert r.status_code == 409
    assert r.json()["kind"] == "conflict"


@pytest.mark.asyncio
async def test_register_invalid_email(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": "not-an-email", "name": "X", "tenant_name": "T", "team_name": "T"},
    )
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Login link requests
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_verified_user(client, store, acme):
    r = await client.post("/api/v1/auth/login", json={"email": "alice@acme.com"})
    assert r.status_code == 200
    assert r.json()["token"] is None
    assert len(store.links) == 1


@pytest.mark.asyncio
async def test_login_exposes_token_in_development(client, store, acme, monkeypatch):
    monkeypatch.setattr(settings, "expose_login_token", True)
    r = await client.post("/api/v1/auth/login", json={"email": "alice@acme.com"})
    assert r.status_code == 200
    assert r.json()["token"] in store.links


@pytest.mark.asyncio
async def test_login_unverified_user(client, store, acme):
    r = await client.post("/api/v1/auth/login", json={"email": "bob@acme.com"})
    assert r.status_code == 403
    assert r.json()["kind"] == "unverified"
    assert store.links == {}


@pytest.mark.asyncio
async def test_login_unknown_user(client, acme):
    r = await client.post("/api/v1/auth/login", json={"email": "nobody@acme.com"})
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Verify → session
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_verify_opens_session(client, store, acme):
    token = await _login_token(store, "alice@acme.com")
    r = await client.post("/api/v1/auth/verify", json={"token": token})
    assert r.status_code == 200

    data = r.json()
    assert data["user"]["email"] == "alice@acme.com"
    assert data["permissions"] == {
        "vault": [],
        "financials": ["read"],
        "reporting": ["create", "read", "update", "delete"],
    }
    assert data["session_token"] in store.sessions

    cookie = r.headers["set-cookie"]
    assert cookie.startswith(f"{settings.session_cookie_name}=")
    assert "HttpOnly" in cookie
    assert r.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_verify_token_is_single_use(client, store, acme):
    token = await _login_token(store, "alice@acme.com")
    r1 = await client.post("/api/v1/auth/verify", json={"token": token})
    assert r1.status_code == 200

    r2 = await client.post("/api/v1/auth/verify", json={"token": token})
    assert r2.status_code == 401
    assert r2.json()["kind"] == "invalid_credential"


@pytest.mark.asyncio
async def test_verify_garbage_token(client, acme):
    r = await client.post("/api/v1/auth/verify", json={"token": "garbage"})
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# /me and logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_requires_session(client, acme):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_with_bearer(client, acme, alice_headers):
    r = await client.get("/api/v1/auth/me", headers=alice_headers)
    assert r.status_code == 200
    assert r.json()["user"]["id"] == str(acme.alice.id)
    assert r.json()["permissions"]["financials"] == ["read"]


@pytest.mark.asyncio
async def test_me_with_cookie(client, store, acme):
    token = await _login_token(store, "alice@acme.com")
    session_token = (
        await client.post("/api/v1/auth/verify", json={"token": token})
    ).json()["session_token"]

    r = await client.get(
        "/api/v1/auth/me",
        headers={"Cookie": f"{settings.session_cookie_name}={session_token}"},
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_logout(client, store, acme, alice_headers):
    r = await client.post("/api/v1/auth/logout", headers=alice_headers)
    assert r.status_code == 200
    assert store.sessions == {}

    r = await client.get("/api/v1/auth/me", headers=alice_headers)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_logout_without_session_is_ok(client):
    r = await client.post("/api/v1/auth/logout")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_unverified_session_is_forbidden(client, store, acme, alice_headers):
    await store.set_user_verified(acme.alice.id, False)
    r = await client.get("/api/v1/auth/me", headers=alice_headers)
    assert r.status_code == 403
    assert r.json()["kind"] == "unverified"


@pytest.mark.asyncio
async def test_session_for_other_user(client, store, acme):
    """Sessions are per user; bob's (unverified) session is refused."""
    headers = await login(store, acme.bob)
    r = await client.get("/api/v1/auth/me", headers=headers)
    assert r.status_code == 403
