"""Two-tier cache for principal data.

Tiers:
    1. LocalUserStore: process-local profiles, no TTL, changed only here
    2. CacheService: shared, TTL-bearing (Redis in production)

Namespaces per principal:
    - profile:     {prefix}:user:{id}
    - security:    {prefix}:user:security:{id} (shorter TTL)
    - permissions: {prefix}:user:permissions:{id}

Fills are serialized by one lock per namespace, so a burst of misses
reaches the backing store once per namespace at a time. With
lock_stripes > 1 each namespace gets N locks selected by principal id,
which keeps the at-most-one-fill-per-key guarantee with less contention.

Every fill runs under a FillTicket from the local store. An invalidation
that lands while a fill is in flight marks the ticket stale, and the loaded
value is then returned to its caller without being written to either tier.

The cache is never a correctness dependency: any exception on the cached
path is logged and answered with a direct repository read.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from contextlib import ExitStack
from typing import TypeVar
from uuid import UUID

from tradeauth.domain.entities import Principal, SecurityInfo
from tradeauth.domain.protocols import AdminRepository, LoggerProtocol, UserRepository
from tradeauth.infrastructure.cache import (
    CacheService,
    FillTicket,
    LocalUserStore,
    PydanticCodec,
)

T = TypeVar("T")

PROFILE_CODEC: PydanticCodec[Principal] = PydanticCodec(Principal)
SECURITY_CODEC: PydanticCodec[SecurityInfo] = PydanticCodec(SecurityInfo)
PERMISSIONS_CODEC: PydanticCodec[list[str]] = PydanticCodec(list[str])

PROFILE = "profile"
SECURITY = "security"
PERMISSIONS = "permissions"


class StripedLocks:
    """N asyncio locks; a principal id always maps to the same one."""

    def __init__(self, stripes: int = 1) -> None:
        if stripes < 1:
            raise ValueError("stripes must be at least 1")
        self._locks = [asyncio.Lock() for _ in range(stripes)]

    def for_key(self, user_id: UUID) -> asyncio.Lock:
        return self._locks[user_id.int % len(self._locks)]

    def __len__(self) -> int:
        return len(self._locks)


class UserCache:
    """Profile, security info and permission lookups for principals."""

    def __init__(
        self,
        *,
        cache: CacheService,
        local_store: LocalUserStore,
        users: UserRepository,
        admins: AdminRepository,
        logger: LoggerProtocol,
        profile_ttl: int = 1800,
        security_ttl: int = 900,
        permissions_ttl: int = 1800,
        lock_stripes: int = 1,
    ) -> None:
        """Initialize the user cache.

        Args:
            cache: Shared generic cache (slow tier).
            local_store: Process-local fast tier owned by this instance.
            users: Principal repository (backing store).
            admins: Admin assignment repository (permission source).
            logger: Structured logger.
            profile_ttl: Profile TTL in seconds.
            security_ttl: Security info TTL in seconds.
            permissions_ttl: Permission list TTL in seconds.
            lock_stripes: Fill locks per namespace.
        """
        self._cache = cache
        self._keys = cache.keys
        self._local = local_store
        self._users = users
        self._admins = admins
        self._logger = logger
        self._profile_ttl = profile_ttl
        self._security_ttl = security_ttl
        self._permissions_ttl = permissions_ttl
        self._locks = {
            PROFILE: StripedLocks(lock_stripes),
            SECURITY: StripedLocks(lock_stripes),
            PERMISSIONS: StripedLocks(lock_stripes),
        }

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: UUID) -> Principal | None:
        """Get a principal's profile.

        Returns:
            The principal, or None if it does not exist.
        """
        cached = self._local.get(user_id)
        if cached is not None:
            return cached
        with self._local.fill(user_id) as ticket:
            try:
                principal = await self._get_or_fill(
                    PROFILE,
                    self._keys.user(user_id),
                    ticket,
                    lambda: self._users.find_by_id(user_id),
                    self._profile_ttl,
                    PROFILE_CODEC,
                )
            except Exception as e:
                self._logger.error(
                    "User cache failed, reading profile from store",
                    error=e,
                    user_id=str(user_id),
                )
                return await self._users.find_by_id(user_id)

            if principal is not None and not ticket.stale:
                self._local.put(principal)
            return principal

    async def set_profile(self, principal: Principal) -> None:
        """Write a profile to both tiers."""
        self._local.put(principal)
        await self._cache.set(
            self._keys.user(principal.id),
            principal,
            self._profile_ttl,
            codec=PROFILE_CODEC,
        )

    async def refresh_profile(self, user_id: UUID) -> Principal | None:
        """Drop the cached profile and load it again."""
        self._local.discard(user_id)
        await self._cache.remove(self._keys.user(user_id))
        return await self.get_profile(user_id)

    async def get_many(self, user_ids: Iterable[UUID]) -> dict[UUID, Principal]:
        """Get several profiles with at most one backing-store query.

        Fast-tier hits are served directly, the rest are looked up in the shared
        cache in one round trip, and whatever is still missing is loaded with
        a single find_many. Loaded profiles populate both tiers; ids the
        store does not know are negatively cached.

        Returns:
            Mapping of id to profile for every id that exists.
        """
        unique_ids = list(dict.fromkeys(user_ids))
        found: dict[UUID, Principal] = {}
        try:
            pending: list[UUID] = []
            for user_id in unique_ids:
                cached = self._local.get(user_id)
                if cached is not None:
                    found[user_id] = cached
                else:
                    pending.append(user_id)
            if not pending:
                return found

            with ExitStack() as stack:
                tickets = {
                    user_id: stack.enter_context(self._local.fill(user_id))
                    for user_id in pending
                }
                await self._fill_many(pending, tickets, found)
            return found
        except Exception as e:
            self._logger.error(
                "User cache batch lookup failed, reading from store",
                error=e,
                count=len(unique_ids),
            )
            return {
                principal.id: principal
                for principal in await self._users.find_many(unique_ids)
            }

    async def _fill_many(
        self,
        pending: list[UUID],
        tickets: dict[UUID, FillTicket],
        found: dict[UUID, Principal],
    ) -> None:
        keys = {user_id: self._keys.user(user_id) for user_id in pending}
        hits = await self._cache.get_many(list(keys.values()), codec=PROFILE_CODEC)

        missing: list[UUID] = []
        for user_id, key in keys.items():
            hit = hits.get(key)
            if hit is None:
                missing.append(user_id)
            elif hit.value is not None:
                found[user_id] = hit.value
                if not tickets[user_id].stale:
                    self._local.put(hit.value)
        if not missing:
            return

        fetched = await self._users.find_many(missing)
        for principal in fetched:
            found[principal.id] = principal
        loaded = {principal.id: principal for principal in fetched}
        writable = [user_id for user_id in missing if not tickets[user_id].stale]
        for user_id in writable:
            if user_id in loaded:
                self._local.put(loaded[user_id])

        await asyncio.gather(
            *(
                self._cache.set(
                    keys[user_id],
                    loaded.get(user_id),
                    self._profile_ttl if user_id in loaded else None,
                    codec=PROFILE_CODEC,
                )
                for user_id in writable
            )
        )
        raced = [keys[user_id] for user_id in writable if tickets[user_id].stale]
        if raced:
            await self._cache.remove_many(raced)

    # ------------------------------------------------------------------
    # Security info
    # ------------------------------------------------------------------

    async def get_security_info(self, user_id: UUID) -> SecurityInfo | None:
        """Get the security-sensitive subset of a principal."""
        try:
            with self._local.fill(user_id) as ticket:
                return await self._get_or_fill(
                    SECURITY,
                    self._keys.user_security(user_id),
                    ticket,
                    lambda: self._load_security_info(user_id),
                    self._security_ttl,
                    SECURITY_CODEC,
                )
        except Exception as e:
            self._logger.error(
                "User cache failed, reading security info from store",
                error=e,
                user_id=str(user_id),
            )
            return await self._load_security_info(user_id)

    async def refresh_security_info(self, user_id: UUID) -> SecurityInfo | None:
        """Drop the cached security info and load it again."""
        await self.invalidate_security_info(user_id)
        return await self.get_security_info(user_id)

    async def invalidate_security_info(self, user_id: UUID) -> None:
        self._local.mark_stale(user_id)
        await self._cache.remove(self._keys.user_security(user_id))

    async def _load_security_info(self, user_id: UUID) -> SecurityInfo | None:
        principal = await self._users.find_by_id(user_id)
        return principal.security_info() if principal else None

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    async def get_permissions(self, user_id: UUID) -> list[str]:
        """Get a principal's permission list (empty for non-admins)."""
        try:
            with self._local.fill(user_id) as ticket:
                permissions = await self._get_or_fill(
                    PERMISSIONS,
                    self._keys.user_permissions(user_id),
                    ticket,
                    lambda: self._load_permissions(user_id),
                    self._permissions_ttl,
                    PERMISSIONS_CODEC,
                )
        except Exception as e:
            self._logger.error(
                "User cache failed, reading permissions from store",
                error=e,
                user_id=str(user_id),
            )
            permissions = await self._load_permissions(user_id)
        return permissions or []

    async def refresh_permissions(self, user_id: UUID) -> list[str]:
        """Drop the cached permissions and load them again."""
        await self.invalidate_permissions(user_id)
        return await self.get_permissions(user_id)

    async def invalidate_permissions(self, user_id: UUID) -> None:
        self._local.mark_stale(user_id)
        await self._cache.remove(self._keys.user_permissions(user_id))

    async def _load_permissions(self, user_id: UUID) -> list[str]:
        admin = await self._admins.find_by_user_id(user_id)
        return admin.permissions() if admin else []

    # ------------------------------------------------------------------
    # Invalidation and stats
    # ------------------------------------------------------------------

    async def invalidate_all(self, user_id: UUID) -> None:
        """Remove the fast-tier entry and all three shared-cache namespaces."""
        self._local.discard(user_id)
        await self._cache.remove_many(self._keys.user_namespaces(user_id))
        self._logger.debug("User cache invalidated", user_id=str(user_id))

    async def invalidate_many(self, user_ids: Iterable[UUID]) -> None:
        """invalidate_all for several principals with one bulk delete."""
        keys: list[str] = []
        for user_id in dict.fromkeys(user_ids):
            self._local.discard(user_id)
            keys.extend(self._keys.user_namespaces(user_id))
        await self._cache.remove_many(keys)

    def hit_rate(self) -> float:
        """Shared-cache hit rate (0.0 before any lookup)."""
        return self._cache.hit_rate()

    async def _get_or_fill(
        self,
        namespace: str,
        key: str,
        ticket: FillTicket,
        loader: Callable[[], Awaitable[T | None]],
        ttl: int,
        codec: PydanticCodec[T],
    ) -> T | None:
        found = await self._cache.lookup(key, codec=codec)
        if found is not None:
            return found.value

        async with self._locks[namespace].for_key(ticket.user_id):
            # another waiter may have filled it while we queued
            found = await self._cache.lookup(key, codec=codec, track=False)
            if found is not None:
                return found.value

            value = await loader()
            if ticket.stale:
                self._logger.debug("Dropping fill raced by invalidation", key=key)
                return value
            await self._cache.set(
                key, value, ttl if value is not None else None, codec=codec
            )
            if ticket.stale:
                await self._cache.remove(key)
            return value
