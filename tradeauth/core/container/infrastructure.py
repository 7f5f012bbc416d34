"""Infrastructure dependency factories.

Application-scoped singletons:
- Logging (structlog console/JSON)
- Cache (Redis backend, key builder, metrics, cache service)
- Database (SQLAlchemy async engine)
- Access tokens (JWT) and refresh token generation
- Fast-tier user store
"""

from functools import lru_cache
from typing import TYPE_CHECKING, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from tradeauth.core.config import get_settings
from tradeauth.infrastructure.persistence.database import Database

if TYPE_CHECKING:
    from tradeauth.domain.protocols import CacheProtocol, LoggerProtocol
    from tradeauth.infrastructure.cache import (
        CacheKeys,
        CacheMetrics,
        CacheService,
        LocalUserStore,
    )
    from tradeauth.infrastructure.security import JWTService, RefreshTokenGenerator


# ============================================================================
# Application-Scoped Dependencies (Singletons)
# ============================================================================


@lru_cache()
def get_logger() -> "LoggerProtocol":
    """Return the application-scoped logger singleton.

    JSON output when LOG_JSON is set or in testing, colored console otherwise.
    """
    from tradeauth.infrastructure.logging import ConsoleAdapter

    settings = get_settings()
    return ConsoleAdapter(
        use_json=settings.log_json or settings.is_testing,
        level=settings.log_level,
        environment=settings.environment.value,
    )


@lru_cache()
def get_cache_backend() -> "CacheProtocol":
    """Get the Redis cache backend singleton (app-scoped).

    Connection pool is shared across the entire application.
    """
    from redis.asyncio import ConnectionPool, Redis

    from tradeauth.infrastructure.cache import RedisAdapter

    pool = ConnectionPool.from_url(
        get_settings().redis_url,
        max_connections=50,
        decode_responses=False,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
        socket_keepalive=True,
    )
    return RedisAdapter(redis_client=Redis(connection_pool=pool))


@lru_cache()
def get_cache_keys() -> "CacheKeys":
    from tradeauth.infrastructure.cache import CacheKeys

    return CacheKeys(prefix=get_settings().cache_key_prefix)


@lru_cache()
def get_cache_metrics() -> "CacheMetrics":
    from tradeauth.infrastructure.cache import CacheMetrics

    return CacheMetrics()


@lru_cache()
def get_cache_service() -> "CacheService":
    """Get the generic cache singleton (app-scoped).

    Shares backend, key builder and metrics with everything else in the
    process, so hit rates are per process rather than per request.
    """
    from tradeauth.infrastructure.cache import CacheService

    settings = get_settings()
    return CacheService(
        get_cache_backend(),
        get_cache_keys(),
        default_ttl=settings.cache_default_ttl_seconds,
        null_ttl=settings.cache_null_ttl_seconds,
        logger=get_logger(),
        metrics=get_cache_metrics(),
    )


@lru_cache()
def get_local_user_store() -> "LocalUserStore":
    """Fast-tier user store, one per process."""
    from tradeauth.infrastructure.cache import LocalUserStore

    return LocalUserStore()


@lru_cache()
def get_database() -> Database:
    """Get database manager singleton (app-scoped).

    Use get_db_session() for per-request sessions.
    """
    settings = get_settings()
    return Database(
        database_url=settings.database_url,
        echo=settings.db_echo,
    )


@lru_cache()
def get_jwt_service() -> "JWTService":
    """Get JWT access token service singleton (app-scoped)."""
    from tradeauth.infrastructure.security import JWTService

    settings = get_settings()
    return JWTService(
        secret_key=settings.secret_key,
        expiration_minutes=settings.access_token_expire_minutes,
        algorithm=settings.algorithm,
        issuer=settings.token_issuer,
        audience=settings.token_audience,
    )


@lru_cache()
def get_refresh_token_generator() -> "RefreshTokenGenerator":
    from tradeauth.infrastructure.security import RefreshTokenGenerator

    return RefreshTokenGenerator(
        expiration_days=get_settings().refresh_token_expire_days
    )


# ============================================================================
# Request-Scoped Dependencies (Per-Request)
# ============================================================================


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session (request-scoped).

    Commits on success, rolls back on exception, always closes.

    Usage:
        @router.post("/auth/refresh")
        async def refresh(session: AsyncSession = Depends(get_db_session)):
            ...
    """
    db = get_database()
    async with db.get_session() as session:
        yield session
