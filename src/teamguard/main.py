"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis for rate limiting,
database engine). Middleware, CORS, error mapping and routers are all
registered here; the auth core itself knows nothing about HTTP.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from teamguard import __version__
from teamguard.api import api_router
from teamguard.api.errors import install_error_handlers
from teamguard.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "teamguard.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from teamguard.redis_client import close_redis, init_redis
    try:
        await init_redis()
        logger.info("teamguard.redis_connected")
    except Exception as e:
        # Redis is optional — app works without rate limiting
        logger.warning("teamguard.redis_unavailable", error=type(e).__name__)

    yield

    logger.info("teamguard.shutdown")
    await close_redis()

    from teamguard.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="teamguard",
        description="Multi-tenant RBAC backend — permission resolution, passwordless login, sessions",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from teamguard.middleware.rate_limit import RateLimitMiddleware
    from teamguard.middleware.request_id import RequestIdMiddleware
    from teamguard.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: teamguard.main:app)
app = create_app()
