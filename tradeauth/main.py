"""
FastAPI application factory.

Wires the request-time token guard, starts the refresh token reaper on
startup and releases the database pool on shutdown.

Run with:
    uvicorn --factory tradeauth.main:create_app
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI

from tradeauth import __version__
from tradeauth.core.config import get_settings
from tradeauth.core.container import (
    get_cache_metrics,
    get_database,
    get_logger,
    get_token_reaper,
    is_access_token_blacklisted,
)
from tradeauth.domain.entities import AccessClaims
from tradeauth.presentation.errors import register_exception_handlers
from tradeauth.presentation.middleware import TokenGuardMiddleware
from tradeauth.presentation.middleware.auth_dependencies import get_current_claims


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager.

    - Startup: start the token reaper
    - Shutdown: stop the reaper (awaiting an in-flight run), close the database

    Args:
        app: FastAPI application instance.

    Yields:
        None during application lifetime.
    """
    reaper = get_token_reaper()
    reaper.start()

    yield

    await reaper.stop()
    await get_database().close()


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="tradeauth",
        version=__version__,
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    app.add_middleware(
        TokenGuardMiddleware,
        is_blacklisted=is_access_token_blacklisted,
        logger=get_logger(),
        warning_minutes=settings.token_expiry_warning_minutes,
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint for monitoring and load balancers."""
        return {"status": "healthy"}

    @app.get("/cache/stats")
    async def cache_stats() -> dict[str, Any]:
        """Cache hit/miss/error counters, overall and per namespace."""
        metrics = get_cache_metrics()
        return {
            "hit_rate": metrics.hit_rate(),
            "namespaces": metrics.get_all_stats(),
        }

    @app.get("/auth/me")
    async def me(
        claims: Annotated[AccessClaims, Depends(get_current_claims)],
    ) -> dict[str, Any]:
        """Claims of the presented access token."""
        return {
            "user_id": str(claims.subject),
            "device_id": claims.device_id,
            "expires_at": claims.expires_at.isoformat(),
        }

    return app
