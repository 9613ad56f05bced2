"""teamguard CLI — maintenance and bootstrap commands against the identity store.

Usage:
    teamguard init-db                           # Create the tables
    teamguard purge-links                       # Delete expired passwordless links
    teamguard verify-user admin@acme.com        # Mark a user verified (bootstrap)
    teamguard unverify-user someone@acme.com    # Block a user from authenticating
    teamguard permissions USER_ID TEAM_ID       # Print the resolved permission map
    teamguard revoke-sessions USER_ID           # Delete every session of a user

Commands talk to the database directly (TEAMGUARD_DATABASE_URL), not to
the HTTP API: verify-user is how the very first admin of a tenant gets in.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import sys
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import click

from teamguard import __version__
from teamguard.auth.sessions import SessionManager
from teamguard.auth.tokens import TokenIssuer
from teamguard.config import settings
from teamguard.permissions.resolver import PermissionResolver
from teamguard.store.base import IdentityStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _open_store() -> AsyncIterator[IdentityStore]:
    """Open a SQL-backed store for one command."""
    from teamguard.db.engine import async_session_factory, engine
    from teamguard.store.sql import SqlIdentityStore

    try:
        async with async_session_factory() as session:
            yield SqlIdentityStore(session)
    finally:
        await engine.dispose()


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _parse_uuid(value: str, label: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        click.secho(f"Error: {label} is not a valid UUID: {value}", fg="red", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="teamguard")
def main():
    """teamguard — RBAC identity store maintenance."""


@main.command("init-db")
def init_db():
    """Create the database tables (idempotent)."""
    from teamguard.db import engine as db_engine

    async def _impl() -> list[str]:
        try:
            return await db_engine.create_schema()
        finally:
            await db_engine.engine.dispose()

    tables = _run(_impl())
    click.secho(f"Schema ready ({len(tables)} tables)", fg="green")


@main.command("purge-links")
def purge_links():
    """Delete passwordless links that have expired."""

    async def _impl() -> int:
        async with _open_store() as store:
            return await TokenIssuer(store, token_bytes=settings.token_bytes).purge_expired_links()

    purged = _run(_impl())
    click.secho(f"Purged {purged} expired link(s)", fg="green")


async def _set_verified(email: str, verified: bool) -> bool:
    async with _open_store() as store:
        user = await store.get_user_by_email(email)
        if user is None:
            return False
        await store.set_user_verified(user.id, verified)
        if not verified and settings.revoke_sessions_on_unverify:
            await store.delete_sessions_for_user(user.id)
        return True


@main.command("verify-user")
@click.argument("email")
def verify_user(email: str):
    """Mark EMAIL's account verified."""
    if not _run(_set_verified(email, True)):
        click.secho(f"User not found: {email}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"Verified {email}", fg="green")


@main.command("unverify-user")
@click.argument("email")
def unverify_user(email: str):
    """Mark EMAIL's account unverified (blocks authentication)."""
    if not _run(_set_verified(email, False)):
        click.secho(f"User not found: {email}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"Unverified {email}", fg="yellow")


@main.command()
@click.argument("user_id")
@click.argument("team_id")
def permissions(user_id: str, team_id: str):
    """Print USER_ID's resolved permission map within TEAM_ID as JSON."""
    uid = _parse_uuid(user_id, "USER_ID")
    tid = _parse_uuid(team_id, "TEAM_ID")

    async def _impl():
        async with _open_store() as store:
            return await PermissionResolver(store).resolve(uid, tid)

    click.echo(json.dumps(_run(_impl()).to_dict(), indent=2))


@main.command("revoke-sessions")
@click.argument("user_id")
def revoke_sessions(user_id: str):
    """Delete every session belonging to USER_ID."""
    uid = _parse_uuid(user_id, "USER_ID")

    async def _impl() -> int:
        async with _open_store() as store:
            return await SessionManager(store).destroy_all_sessions_for_user(uid)

    revoked = _run(_impl())
    click.secho(f"Revoked {revoked} session(s)", fg="green")


if __name__ == "__main__":
    main()
