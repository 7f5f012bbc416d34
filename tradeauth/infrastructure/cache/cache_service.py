"""Typed cache-aside layer over a CacheProtocol backend.

Features:
    - get_or_create with negative caching: a factory result of None is
      stored as a sentinel so repeated lookups for missing records do not
      reach the backing store
    - key registry (sorted set) maintained on every registered value write,
      which is what remove_by_prefix and clear_all enumerate. Members whose
      keys expired are dropped by prune_registry
    - hit/miss/error accounting through CacheMetrics

Backend failures never escape: reads degrade to misses and writes become
logged no-ops.

Usage:
    cache = CacheService(backend, keys, default_ttl=1800, null_ttl=300, logger=logger)
    profile = await cache.get_or_create(
        keys.user(user_id),
        lambda: user_repo.find_by_id(user_id),
        ttl=1800,
        codec=PydanticCodec(Principal),
    )
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from pydantic import TypeAdapter

from tradeauth.core.result import Failure, Success
from tradeauth.domain.protocols import CacheProtocol, LoggerProtocol
from tradeauth.infrastructure.cache.cache_keys import CacheKeys
from tradeauth.infrastructure.cache.cache_metrics import CacheMetrics

T = TypeVar("T")

# Never valid JSON, so it cannot collide with an encoded value.
NULL_MARKER = "\x00null"


class CacheCodec(Protocol[T]):
    """Converts values to and from their cached string form."""

    def encode(self, value: T) -> str: ...

    def decode(self, raw: str) -> T: ...


class PydanticCodec(Generic[T]):
    """JSON codec backed by a pydantic TypeAdapter.

    Handles dataclasses, UUIDs, datetimes and containers of them.
    """

    def __init__(self, type_: Any) -> None:
        self._adapter: TypeAdapter[T] = TypeAdapter(type_)

    def encode(self, value: T) -> str:
        return self._adapter.dump_json(value).decode("utf-8")

    def decode(self, raw: str) -> T:
        return self._adapter.validate_json(raw)


JSON_CODEC: PydanticCodec[Any] = PydanticCodec(Any)


@dataclass(frozen=True, slots=True)
class CacheLookup(Generic[T]):
    """A cache hit.

    ``value`` is None for a cached negative result; a miss is represented by
    the absence of a CacheLookup, never by one.
    """

    value: T | None

    @property
    def is_null(self) -> bool:
        return self.value is None


class CacheService:
    """Generic cache-aside service.

    Concurrent misses on the same key are not serialized here; callers that
    need at most one factory call per key apply their own fill lock.
    """

    def __init__(
        self,
        backend: CacheProtocol,
        keys: CacheKeys,
        *,
        default_ttl: int,
        null_ttl: int,
        logger: LoggerProtocol,
        metrics: CacheMetrics | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            backend: Key/value store with per-key TTL.
            keys: Key builder (provides the registry key and namespaces).
            default_ttl: TTL in seconds for values when the caller gives none.
            null_ttl: TTL in seconds for negative results when the caller gives none.
            logger: Structured logger.
            metrics: Metrics tracker (a private one is created if omitted).
        """
        self._backend = backend
        self._keys = keys
        self._default_ttl = default_ttl
        self._null_ttl = null_ttl
        self._logger = logger
        self._metrics = metrics or CacheMetrics()

    @property
    def keys(self) -> CacheKeys:
        return self._keys

    @property
    def metrics(self) -> CacheMetrics:
        return self._metrics

    async def lookup(
        self, key: str, *, codec: CacheCodec[T] = JSON_CODEC, track: bool = True
    ) -> CacheLookup[T] | None:
        """Look up a key, distinguishing cached null from a miss.

        Args:
            key: Cache key.
            codec: Value codec.
            track: Count this lookup in the hit rate. Re-checks done under a
                fill lock pass False so one request counts once.

        Returns:
            CacheLookup on hit (value None for a cached null), None on miss.
        """
        namespace = self._keys.namespace_from_key(key)
        match await self._backend.get(key):
            case Success(value=None):
                if track:
                    self._metrics.record_miss(namespace)
                return None
            case Success(value=raw):
                return self._decode_hit(key, raw, codec, namespace, track)
            case Failure(error=error):
                self._metrics.record_error(namespace)
                if track:
                    self._metrics.record_miss(namespace)
                self._logger.warning(
                    "Cache read failed, treating as miss",
                    key=key,
                    error=error.message,
                )
                return None
        return None

    async def get(self, key: str, *, codec: CacheCodec[T] = JSON_CODEC) -> T | None:
        """Get a cached value.

        Returns:
            The value, or None on a miss or a cached null.
        """
        found = await self.lookup(key, codec=codec)
        return found.value if found is not None else None

    async def get_or_create(
        self,
        key: str,
        factory: Callable[[], Awaitable[T | None]],
        ttl: int | None = None,
        *,
        codec: CacheCodec[T] = JSON_CODEC,
    ) -> T | None:
        """Return the cached value or compute, store and return it.

        A hit (including a cached null) never calls the factory. On a miss
        the factory runs once for this caller and its result is stored, None
        included.

        Args:
            key: Cache key.
            factory: Coroutine function producing the value.
            ttl: TTL in seconds (default depends on whether the result is None).
            codec: Value codec.

        Returns:
            The cached or freshly computed value (None for negative results).
        """
        found = await self.lookup(key, codec=codec)
        if found is not None:
            return found.value

        value = await factory()
        await self.set(key, value, ttl, codec=codec)
        return value

    async def set(
        self,
        key: str,
        value: T | None,
        ttl: int | None = None,
        *,
        codec: CacheCodec[T] = JSON_CODEC,
        register: bool = True,
    ) -> bool:
        """Store a value (None is stored as a negative result).

        Args:
            key: Cache key.
            value: Value to store.
            ttl: TTL in seconds (None = default for values or nulls).
            codec: Value codec.
            register: Record the key in the registry so prefix removal sees it.
                Negative results are never registered; they expire within the
                null TTL and explicit remove still clears them.

        Returns:
            True if the backend accepted the write.
        """
        namespace = self._keys.namespace_from_key(key)
        if value is None:
            raw = NULL_MARKER
            effective_ttl = ttl if ttl is not None else self._null_ttl
        else:
            try:
                raw = codec.encode(value)
            except (TypeError, ValueError) as e:
                self._metrics.record_error(namespace)
                self._logger.error("Failed to encode cache value", error=e, key=key)
                return False
            effective_ttl = ttl if ttl is not None else self._default_ttl

        match await self._backend.set(key, raw, effective_ttl):
            case Failure(error=error):
                self._metrics.record_error(namespace)
                self._logger.warning(
                    "Cache write failed", key=key, error=error.message
                )
                return False

        if register and value is not None:
            match await self._backend.index_add(self._keys.registry, key):
                case Failure(error=error):
                    self._logger.warning(
                        "Cache registry update failed", key=key, error=error.message
                    )
        return True

    async def remove(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if the key existed.
        """
        removed = False
        match await self._backend.delete(key):
            case Success(value=existed):
                removed = existed
            case Failure(error=error):
                self._metrics.record_error(self._keys.namespace_from_key(key))
                self._logger.warning("Cache delete failed", key=key, error=error.message)
        await self._backend.index_remove(self._keys.registry, key)
        return removed

    async def remove_many(self, keys: list[str]) -> int:
        """Remove several keys.

        Returns:
            Number of keys that existed.
        """
        if not keys:
            return 0
        removed = 0
        match await self._backend.delete_many(keys):
            case Success(value=count):
                removed = count
            case Failure(error=error):
                self._logger.warning(
                    "Cache bulk delete failed", key_count=len(keys), error=error.message
                )
        await self._backend.index_remove(self._keys.registry, *keys)
        return removed

    async def exists(self, key: str) -> bool:
        """Check whether a key is cached (cached nulls count).

        Not counted as a lookup in the hit rate. Backend failures report False.
        """
        match await self._backend.exists(key):
            case Success(value=present):
                return present
            case Failure(error=error):
                self._metrics.record_error(self._keys.namespace_from_key(key))
                self._logger.warning(
                    "Cache exists check failed", key=key, error=error.message
                )
        return False

    async def get_many(
        self, keys: list[str], *, codec: CacheCodec[T] = JSON_CODEC
    ) -> dict[str, CacheLookup[T]]:
        """Probe several keys in one round trip.

        Returns:
            Hits only (cached nulls included, with value None).
        """
        if not keys:
            return {}
        match await self._backend.get_many(keys):
            case Success(value=found):
                hits: dict[str, CacheLookup[T]] = {}
                for key in keys:
                    namespace = self._keys.namespace_from_key(key)
                    raw = found.get(key)
                    if raw is None:
                        self._metrics.record_miss(namespace)
                        continue
                    hit = self._decode_hit(key, raw, codec, namespace)
                    if hit is not None:
                        hits[key] = hit
                return hits
            case Failure(error=error):
                for key in keys:
                    namespace = self._keys.namespace_from_key(key)
                    self._metrics.record_error(namespace)
                    self._metrics.record_miss(namespace)
                self._logger.warning(
                    "Cache bulk read failed, treating as misses",
                    key_count=len(keys),
                    error=error.message,
                )
        return {}

    async def remove_by_prefix(self, prefix: str) -> int:
        """Remove every registered key starting with prefix.

        Args:
            prefix: Full key prefix (e.g. "tradeauth:user:").

        Returns:
            Number of keys removed from the backend.
        """
        match await self._backend.index_members(self._keys.registry, prefix):
            case Success(value=members):
                if not members:
                    return 0
                removed = await self.remove_many(members)
                self._logger.info(
                    "Removed cache keys by prefix", prefix=prefix, removed=removed
                )
                return removed
            case Failure(error=error):
                self._logger.warning(
                    "Cache registry read failed", prefix=prefix, error=error.message
                )
        return 0

    async def clear_all(self) -> int:
        """Remove every registered key of this deployment.

        Unregistered entries (the access token blacklist) are left alone.
        """
        return await self.remove_by_prefix(f"{self._keys.prefix}:")

    async def prune_registry(self, batch_size: int = 500) -> int:
        """Drop registry members whose keys no longer exist.

        Keys expire by TTL without leaving the registry, so this runs
        periodically (the token reaper calls it on every run).

        Args:
            batch_size: Members checked per existence round trip.

        Returns:
            Number of members removed from the registry.
        """
        listing = await self._backend.index_members(self._keys.registry, "")
        if isinstance(listing, Failure):
            self._logger.warning(
                "Cache registry read failed, prune skipped", error=listing.error.message
            )
            return 0

        members = listing.value
        pruned = 0
        for start in range(0, len(members), batch_size):
            batch = members[start : start + batch_size]
            existing = await self._backend.existing_keys(batch)
            if isinstance(existing, Failure):
                self._logger.warning(
                    "Cache existence check failed, prune stopped",
                    pruned=pruned,
                    error=existing.error.message,
                )
                break
            dead = [key for key in batch if key not in existing.value]
            match await self._backend.index_remove(self._keys.registry, *dead):
                case Success(value=count):
                    pruned += count
                case Failure(error=error):
                    self._logger.warning(
                        "Cache registry prune failed", error=error.message
                    )

        if pruned:
            self._logger.info(
                "Pruned expired keys from cache registry",
                pruned=pruned,
                remaining=len(members) - pruned,
            )
        return pruned

    def hit_rate(self) -> float:
        """Hits divided by lookups, 0.0 before the first lookup."""
        return self._metrics.hit_rate()

    def _decode_hit(
        self,
        key: str,
        raw: str,
        codec: CacheCodec[T],
        namespace: str,
        track: bool = True,
    ) -> CacheLookup[T] | None:
        if raw == NULL_MARKER:
            if track:
                self._metrics.record_hit(namespace)
            return CacheLookup(value=None)
        try:
            value = codec.decode(raw)
        except ValueError as e:
            self._metrics.record_error(namespace)
            if track:
                self._metrics.record_miss(namespace)
            self._logger.warning(
                "Discarding undecodable cache entry", key=key, error=str(e)
            )
            return None
        if track:
            self._metrics.record_hit(namespace)
        return CacheLookup(value=value)
