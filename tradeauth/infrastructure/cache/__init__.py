"""Cache infrastructure: Redis adapter, generic cache service, fast tier."""

from tradeauth.infrastructure.cache.cache_keys import CacheKeys
from tradeauth.infrastructure.cache.cache_metrics import CacheMetrics
from tradeauth.infrastructure.cache.cache_service import (
    JSON_CODEC,
    CacheLookup,
    CacheService,
    PydanticCodec,
)
from tradeauth.infrastructure.cache.local_user_store import FillTicket, LocalUserStore
from tradeauth.infrastructure.cache.redis_adapter import RedisAdapter

__all__ = [
    "JSON_CODEC",
    "CacheKeys",
    "CacheLookup",
    "CacheMetrics",
    "CacheService",
    "FillTicket",
    "LocalUserStore",
    "PydanticCodec",
    "RedisAdapter",
]
