"""Application service factories.

TokenService and UserCache are built per unit of work: their repositories
share one AsyncSession. Everything else they need comes from the
application-scoped singletons in infrastructure.py.
"""

from datetime import timedelta
from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tradeauth.core.config import get_settings
from tradeauth.core.container.infrastructure import (
    get_cache_service,
    get_database,
    get_db_session,
    get_jwt_service,
    get_local_user_store,
    get_logger,
    get_refresh_token_generator,
)

if TYPE_CHECKING:
    from tradeauth.application import TokenBlacklist, TokenService, UserCache
    from tradeauth.infrastructure.jobs import TokenReaper


@lru_cache()
def get_token_blacklist() -> "TokenBlacklist":
    """Access token blacklist singleton (cache-backed, no session)."""
    from tradeauth.application import TokenBlacklist

    settings = get_settings()
    return TokenBlacklist(
        get_cache_service(),
        get_logger(),
        enabled=settings.enable_token_blacklist,
        leeway_seconds=settings.blacklist_leeway_seconds,
    )


def build_token_service(session: AsyncSession) -> "TokenService":
    """Create a TokenService bound to one database session."""
    from tradeauth.application import TokenService
    from tradeauth.infrastructure.persistence.repositories import (
        RefreshTokenRepository,
        UserRepository,
    )

    settings = get_settings()
    return TokenService(
        refresh_tokens=RefreshTokenRepository(session=session),
        users=UserRepository(session=session),
        jwt_service=get_jwt_service(),
        token_generator=get_refresh_token_generator(),
        blacklist=get_token_blacklist(),
        logger=get_logger(),
        max_active_devices=settings.max_active_devices,
        reuse_policy=settings.reuse_detection_policy,
        revoke_descendants=settings.revoke_descendants,
        retention=timedelta(days=settings.refresh_token_retention_days),
    )


def build_user_cache(session: AsyncSession) -> "UserCache":
    """Create a UserCache bound to one database session.

    The fast tier is the process-wide LocalUserStore.
    """
    from tradeauth.application import UserCache
    from tradeauth.infrastructure.persistence.repositories import (
        AdminRepository,
        UserRepository,
    )

    settings = get_settings()
    return UserCache(
        cache=get_cache_service(),
        local_store=get_local_user_store(),
        users=UserRepository(session=session),
        admins=AdminRepository(session=session),
        logger=get_logger(),
        profile_ttl=settings.user_profile_ttl_seconds,
        security_ttl=settings.user_security_ttl_seconds,
        permissions_ttl=settings.user_permissions_ttl_seconds,
        lock_stripes=settings.user_cache_lock_stripes,
    )


async def get_token_service(
    session: AsyncSession = Depends(get_db_session),
) -> "TokenService":
    """Get TokenService (request-scoped).

    Usage:
        @router.post("/auth/refresh")
        async def refresh(service: TokenService = Depends(get_token_service)):
            result = await service.rotate(token, device_id)
    """
    return build_token_service(session)


async def get_user_cache(
    session: AsyncSession = Depends(get_db_session),
) -> "UserCache":
    """Get UserCache (request-scoped)."""
    return build_user_cache(session)


async def is_access_token_blacklisted(jti: str) -> bool:
    """Blacklist check used by TokenGuardMiddleware."""
    return await get_token_blacklist().contains(jti)


async def cleanup_expired_tokens() -> int:
    """Run TokenService.cleanup_expired in a fresh unit of work.

    Also prunes expired keys from the cache registry. Returns the number of
    refresh token rows removed.
    """
    async with get_database().get_session() as session:
        purged = await build_token_service(session).cleanup_expired()
    await get_cache_service().prune_registry()
    return purged


@lru_cache()
def get_token_reaper() -> "TokenReaper":
    """Background reaper singleton (started and stopped by the app lifespan)."""
    from tradeauth.infrastructure.jobs import TokenReaper

    return TokenReaper(
        cleanup_expired_tokens,
        interval_seconds=get_settings().reaper_interval_seconds,
        logger=get_logger(),
    )
