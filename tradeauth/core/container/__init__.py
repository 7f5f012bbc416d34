"""Container module - Centralized dependency injection.

Organized by scope:
- infrastructure: application-scoped singletons (cache, db, logging, JWT)
- services: per-unit-of-work TokenService / UserCache, blacklist, reaper

    from tradeauth.core.container import get_cache_service, get_token_service
"""

from tradeauth.core.container.infrastructure import (
    get_cache_backend,
    get_cache_keys,
    get_cache_metrics,
    get_cache_service,
    get_database,
    get_db_session,
    get_jwt_service,
    get_local_user_store,
    get_logger,
    get_refresh_token_generator,
)
from tradeauth.core.container.services import (
    build_token_service,
    build_user_cache,
    cleanup_expired_tokens,
    get_token_blacklist,
    get_token_reaper,
    get_token_service,
    get_user_cache,
    is_access_token_blacklisted,
)

__all__ = [
    "build_token_service",
    "build_user_cache",
    "cleanup_expired_tokens",
    "get_cache_backend",
    "get_cache_keys",
    "get_cache_metrics",
    "get_cache_service",
    "get_database",
    "get_db_session",
    "get_jwt_service",
    "get_local_user_store",
    "get_logger",
    "get_refresh_token_generator",
    "get_token_blacklist",
    "get_token_reaper",
    "get_token_service",
    "get_user_cache",
    "is_access_token_blacklisted",
]
