"""Redis adapter implementing CacheProtocol.

Architecture:
- Implements CacheProtocol without inheritance (structural typing)
- Maps Redis exceptions to CacheError
- Returns Result types for all operations
- Key indexes are sorted sets with every score 0, so ZRANGEBYLEX gives
  prefix lookups without SCAN/KEYS
"""

import builtins
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from tradeauth.core.enums import ErrorCode
from tradeauth.core.result import Failure, Result, Success
from tradeauth.infrastructure.enums import InfrastructureErrorCode
from tradeauth.infrastructure.errors import CacheError


def _decode(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def _cache_error(
    infrastructure_code: InfrastructureErrorCode,
    message: str,
    error: Exception,
    **details: Any,
) -> Failure[CacheError]:
    details["error"] = str(error)
    if not isinstance(error, RedisError):
        details["type"] = type(error).__name__
        message = f"Unexpected error: {message}"
    return Failure(
        error=CacheError(
            code=ErrorCode.CACHE_UNAVAILABLE,
            infrastructure_code=infrastructure_code,
            message=message,
            details=details,
        )
    )


class RedisAdapter:
    """Redis implementation of CacheProtocol.

    Note: Does NOT inherit from CacheProtocol (uses structural typing).

    Attributes:
        _redis: Async Redis client instance.
    """

    def __init__(self, redis_client: Redis) -> None:
        """Initialize Redis adapter.

        Args:
            redis_client: Async Redis client instance.
        """
        self._redis = redis_client

    async def get(self, key: str) -> Result[str | None, CacheError]:
        """Get value from Redis.

        Args:
            key: Cache key.

        Returns:
            Result with value if found, None if not found, or CacheError.
        """
        try:
            value = await self._redis.get(key)
            return Success(value=None if value is None else _decode(value))
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_GET_ERROR,
                f"Failed to get key '{key}' from cache",
                e,
                key=key,
            )

    async def get_many(self, keys: list[str]) -> Result[dict[str, str], CacheError]:
        """Get several values with a single MGET.

        Args:
            keys: Cache keys.

        Returns:
            Result with found keys mapped to values, or CacheError.
        """
        if not keys:
            return Success(value={})
        try:
            values = await self._redis.mget(keys)
            return Success(
                value={
                    key: _decode(value)
                    for key, value in zip(keys, values, strict=True)
                    if value is not None
                }
            )
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_GET_ERROR,
                "Failed to get keys from cache",
                e,
                key_count=len(keys),
            )

    async def set(
        self,
        key: str,
        value: str,
        ttl: int | None = None,
    ) -> Result[None, CacheError]:
        """Set value in Redis.

        Args:
            key: Cache key.
            value: Value to cache.
            ttl: Time to live in seconds (None = no expiration).

        Returns:
            Result with None on success, or CacheError.
        """
        try:
            if ttl is not None:
                await self._redis.setex(key, ttl, value)
            else:
                await self._redis.set(key, value)
            return Success(value=None)
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_SET_ERROR,
                f"Failed to set key '{key}' in cache",
                e,
                key=key,
                ttl=ttl,
            )

    async def delete(self, key: str) -> Result[bool, CacheError]:
        """Delete key from Redis.

        Returns:
            Result with True if deleted, False if key didn't exist, or CacheError.
        """
        try:
            deleted_count = await self._redis.delete(key)
            return Success(value=deleted_count > 0)
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_DELETE_ERROR,
                f"Failed to delete key '{key}' from cache",
                e,
                key=key,
            )

    async def delete_many(self, keys: list[str]) -> Result[int, CacheError]:
        """Delete several keys with one DEL.

        Returns:
            Result with the number of keys removed, or CacheError.
        """
        if not keys:
            return Success(value=0)
        try:
            deleted_count = await self._redis.delete(*keys)
            return Success(value=int(deleted_count))
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_DELETE_ERROR,
                "Failed to delete keys from cache",
                e,
                key_count=len(keys),
            )

    async def exists(self, key: str) -> Result[bool, CacheError]:
        """Check if key exists in Redis.

        Returns:
            Result with True if exists, False if not, or CacheError.
        """
        try:
            exists_count = await self._redis.exists(key)
            return Success(value=exists_count > 0)
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_GET_ERROR,
                f"Failed to check existence of key '{key}'",
                e,
                key=key,
            )

    async def existing_keys(self, keys: list[str]) -> Result[builtins.set[str], CacheError]:
        """Check several keys for existence in one pipelined round trip.

        Returns:
            Result with the keys that exist, or CacheError.
        """
        if not keys:
            return Success(value=set())
        try:
            async with self._redis.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.exists(key)
                counts = await pipe.execute()
            return Success(
                value={key for key, count in zip(keys, counts, strict=True) if count}
            )
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_GET_ERROR,
                "Failed to check existence of keys",
                e,
                key_count=len(keys),
            )

    async def ttl(self, key: str) -> Result[int | None, CacheError]:
        """Get time to live for key in Redis.

        Returns:
            Result with seconds until expiration, None if no TTL or key doesn't exist, or CacheError.
        """
        try:
            ttl_value = await self._redis.ttl(key)
            # Redis returns -2 if key doesn't exist, -1 if no expiration
            if ttl_value in (-2, -1):
                return Success(value=None)
            return Success(value=ttl_value)
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_GET_ERROR,
                f"Failed to get TTL for key '{key}'",
                e,
                key=key,
            )

    async def index_add(self, index: str, *members: str) -> Result[None, CacheError]:
        """Add members to a sorted-set key index (score 0).

        Args:
            index: Index key.
            *members: Keys to register.

        Returns:
            Result with None on success, or CacheError.
        """
        if not members:
            return Success(value=None)
        try:
            await self._redis.zadd(index, dict.fromkeys(members, 0))
            return Success(value=None)
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_INDEX_ERROR,
                f"Failed to add to index '{index}'",
                e,
                index=index,
            )

    async def index_members(
        self, index: str, prefix: str
    ) -> Result[list[str], CacheError]:
        """List index members starting with prefix.

        Args:
            index: Index key.
            prefix: Member prefix (empty string lists everything).

        Returns:
            Result with matching members in lexicographic order, or CacheError.
        """
        encoded = prefix.encode("utf-8")
        lower = b"[" + encoded if encoded else b"-"
        upper = b"[" + encoded + b"\xff" if encoded else b"+"
        try:
            members = await self._redis.zrangebylex(index, lower, upper)
            return Success(value=[_decode(member) for member in members])
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_INDEX_ERROR,
                f"Failed to read index '{index}'",
                e,
                index=index,
                prefix=prefix,
            )

    async def index_remove(self, index: str, *members: str) -> Result[int, CacheError]:
        """Remove members from a key index.

        Returns:
            Result with the number of members removed, or CacheError.
        """
        if not members:
            return Success(value=0)
        try:
            removed = await self._redis.zrem(index, *members)
            return Success(value=int(removed))
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_INDEX_ERROR,
                f"Failed to remove from index '{index}'",
                e,
                index=index,
            )

    async def ping(self) -> Result[bool, CacheError]:
        """Check Redis connectivity (health check).

        Returns:
            Result with True if Redis is reachable, or CacheError.
        """
        try:
            await self._redis.ping()  # type: ignore[misc]
            return Success(value=True)
        except Exception as e:
            return _cache_error(
                InfrastructureErrorCode.CACHE_CONNECTION_ERROR,
                "Redis health check failed",
                e,
            )
