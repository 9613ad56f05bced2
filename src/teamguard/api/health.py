"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and the
identity store (Postgres) and rate-limit backend (Redis) are reachable.
Redis is optional, so only Postgres decides healthy vs degraded.
"""

from fastapi import APIRouter
from sqlalchemy import text

from teamguard import __version__
from teamguard.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    # Check Postgres
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["postgres"] = "ok"
    except Exception as e:
        checks["postgres"] = f"error: {type(e).__name__}"

    # Check Redis
    try:
        from teamguard.redis_client import get_redis

        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"unavailable: {type(e).__name__}"

    status = "healthy" if checks["postgres"] == "ok" else "degraded"
    return {"status": status, **checks}
