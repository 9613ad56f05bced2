"""Session manager — authentication, verified checks, session lifecycle."""

import pytest

from conftest import make_user
from teamguard.auth.context import Credential
from teamguard.auth.sessions import SessionManager
from teamguard.auth.tokens import TokenIssuer
from teamguard.errors import (
    ErrorKind,
    InvalidCredentialError,
    NotFoundError,
    UnverifiedAccountError,
)


def _manager(store, clock) -> SessionManager:
    return SessionManager(store, TokenIssuer(store, clock=clock))


# ═══════════════════════════════════════════════════════════
# Session credentials
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_authenticate_session(store, clock, acme):
    sessions = _manager(store, clock)
    token = await sessions.create_session(acme.alice.id)

    identity = await sessions.authenticate(Credential.session(token))
    assert identity.user_id == acme.alice.id
    assert identity.team_id == acme.team_a.id
    assert identity.tenant_id == acme.tenant.id


@pytest.mark.asyncio
@pytest.mark.parametrize("token", ["", "bogus"])
async def test_authenticate_bad_session(store, clock, acme, token):
    with pytest.raises(InvalidCredentialError) as exc:
        await _manager(store, clock).authenticate(Credential.session(token))
    assert exc.value.kind is ErrorKind.INVALID_CREDENTIAL


@pytest.mark.asyncio
async def test_expired_session_is_invalid(store, clock, acme):
    sessions = _manager(store, clock)
    token = await sessions.create_session(acme.alice.id)

    clock.advance(hours=24)
    with pytest.raises(InvalidCredentialError):
        await sessions.authenticate(Credential.session(token))


@pytest.mark.asyncio
async def test_unverified_user_with_live_session(store, clock, acme):
    """Unverifying blocks the next request even though the session is valid."""
    sessions = _manager(store, clock)
    token = await sessions.create_session(acme.alice.id)
    await store.set_user_verified(acme.alice.id, False)

    with pytest.raises(UnverifiedAccountError) as exc:
        await sessions.authenticate(Credential.session(token))
    assert exc.value.kind is ErrorKind.UNVERIFIED

    await store.set_user_verified(acme.alice.id, True)
    assert (await sessions.authenticate(Credential.session(token))).user_id == acme.alice.id


# ═══════════════════════════════════════════════════════════
# Passwordless credentials
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_with_passwordless(store, clock, acme):
    sessions = _manager(store, clock)
    token = await sessions.issuer.issue_passwordless_token(acme.alice.email)

    identity, session_token = await sessions.login_with_passwordless(token)
    assert identity.email == acme.alice.email
    assert session_token != token
    assert (await sessions.authenticate(Credential.session(session_token))) == identity


@pytest.mark.asyncio
async def test_passwordless_token_is_single_use(store, clock, acme):
    sessions = _manager(store, clock)
    token = await sessions.issuer.issue_passwordless_token(acme.alice.email)
    await sessions.authenticate(Credential.passwordless(token))

    with pytest.raises(InvalidCredentialError):
        await sessions.authenticate(Credential.passwordless(token))


@pytest.mark.asyncio
async def test_passwordless_unverified_consumes_token(store, clock, acme):
    """The token is redeemed before the verified check, so it is spent either way."""
    sessions = _manager(store, clock)
    token = await sessions.issuer.issue_passwordless_token(acme.bob.email)

    with pytest.raises(UnverifiedAccountError):
        await sessions.authenticate(Credential.passwordless(token))
    await store.set_user_verified(acme.bob.id, True)
    with pytest.raises(InvalidCredentialError):
        await sessions.authenticate(Credential.passwordless(token))


@pytest.mark.asyncio
async def test_passwordless_for_unknown_email(store, clock):
    sessions = _manager(store, clock)
    token = await sessions.issuer.issue_passwordless_token("ghost@acme.com")

    with pytest.raises(NotFoundError):
        await sessions.authenticate(Credential.passwordless(token))


@pytest.mark.asyncio
async def test_expired_passwordless_token(store, clock, acme):
    sessions = _manager(store, clock)
    token = await sessions.issuer.issue_passwordless_token(acme.alice.email)

    clock.advance(minutes=16)
    with pytest.raises(InvalidCredentialError):
        await sessions.login_with_passwordless(token)


# ═══════════════════════════════════════════════════════════
# Destroying sessions
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_destroy_session(store, clock, acme):
    sessions = _manager(store, clock)
    token = await sessions.create_session(acme.alice.id)

    await sessions.destroy_session(token)
    with pytest.raises(InvalidCredentialError):
        await sessions.authenticate(Credential.session(token))

    # Unknown and repeated tokens are no-ops
    await sessions.destroy_session(token)
    await sessions.destroy_session("never-issued")
    await sessions.destroy_session("")


@pytest.mark.asyncio
async def test_destroy_all_sessions_for_user(store, clock, acme):
    sessions = _manager(store, clock)
    carol = await make_user(store, "carol@acme.com", acme.tenant, acme.team_b)
    alice_tokens = [await sessions.create_session(acme.alice.id) for _ in range(3)]
    carol_token = await sessions.create_session(carol.id)

    assert await sessions.destroy_all_sessions_for_user(acme.alice.id) == 3
    for token in alice_tokens:
        with pytest.raises(InvalidCredentialError):
            await sessions.authenticate(Credential.session(token))
    assert (await sessions.authenticate(Credential.session(carol_token))).user_id == carol.id
    assert await sessions.destroy_all_sessions_for_user(acme.alice.id) == 0


def test_credential_repr_hides_token():
    cred = Credential.session("super-secret-token")
    assert "super-secret-token" not in repr(cred)
