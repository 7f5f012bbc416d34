"""Unit tests for UserCache.

Tests cover:
- Fast tier and shared cache population on profile reads
- Negative caching of unknown principals
- Single backing-store fill under concurrent misses
- get_many: one find_many for all misses, negative caching, no refetch
- invalidate_all / invalidate_many leave no residue
- Loads overlapping an invalidation are returned but not cached
- Permissions derivation
- Fallback to the repository when the cache layer raises

Architecture:
- Repositories are AsyncMock doubles
- Shared tier is CacheService over fakeredis
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from uuid_extensions import uuid7

from tests.conftest import make_principal
from tradeauth.application import StripedLocks, UserCache
from tradeauth.domain.entities import AdminAssignment
from tradeauth.domain.enums import AdminRole
from tradeauth.infrastructure.cache import CacheKeys


@pytest.fixture
def user_repo():
    repo = AsyncMock()
    repo.find_by_id.return_value = None
    repo.find_many.return_value = []
    return repo


@pytest.fixture
def admin_repo():
    repo = AsyncMock()
    repo.find_by_user_id.return_value = None
    return repo


@pytest.fixture
def user_cache(cache_service, local_store, user_repo, admin_repo, logger):
    return UserCache(
        cache=cache_service,
        local_store=local_store,
        users=user_repo,
        admins=admin_repo,
        logger=logger,
    )


@pytest.mark.unit
class TestProfile:
    """Test profile reads and writes."""

    @pytest.mark.asyncio
    async def test_miss_loads_and_populates_both_tiers(
        self, user_cache, user_repo, local_store, redis_client
    ):
        """A cold read hits the repository once and fills both tiers."""
        principal = make_principal()
        user_repo.find_by_id.return_value = principal

        first = await user_cache.get_profile(principal.id)
        second = await user_cache.get_profile(principal.id)

        assert first == principal
        assert second == principal
        user_repo.find_by_id.assert_awaited_once_with(principal.id)
        assert principal.id in local_store
        assert await redis_client.exists(f"test:user:{principal.id}") == 1

    @pytest.mark.asyncio
    async def test_shared_tier_hit_round_trips_entity(
        self, user_cache, cache_service, local_store, user_repo
    ):
        """A profile written by one process decodes to an equal Principal."""
        principal = make_principal(credit_score=91.25)
        await user_cache.set_profile(principal)
        local_store.discard(principal.id)

        loaded = await user_cache.get_profile(principal.id)

        assert loaded == principal
        user_repo.find_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_principal_is_negatively_cached(self, user_cache, user_repo):
        """Repeated reads of a missing id reach the store only once."""
        user_id = uuid7()

        assert await user_cache.get_profile(user_id) is None
        assert await user_cache.get_profile(user_id) is None

        user_repo.find_by_id.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_misses_fill_once(self, user_cache, user_repo):
        """A burst of cold reads for one id results in a single store call."""
        principal = make_principal()

        async def slow_find(user_id):
            await asyncio.sleep(0.01)
            return principal

        user_repo.find_by_id.side_effect = slow_find

        results = await asyncio.gather(
            *(user_cache.get_profile(principal.id) for _ in range(20))
        )

        assert all(result == principal for result in results)
        user_repo.find_by_id.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_profile_reloads(self, user_cache, user_repo):
        """refresh_profile drops cached copies and reads the store again."""
        principal = make_principal(credit_score=50.0)
        user_repo.find_by_id.return_value = principal
        await user_cache.get_profile(principal.id)

        updated = make_principal(id=principal.id, email=principal.email, credit_score=80.0)
        user_repo.find_by_id.return_value = updated

        assert await user_cache.refresh_profile(principal.id) == updated
        assert user_repo.find_by_id.await_count == 2


@pytest.mark.unit
class TestSecurityInfoAndPermissions:
    """Test the security and permissions namespaces."""

    @pytest.mark.asyncio
    async def test_security_info_projection(self, user_cache, user_repo, redis_client):
        """Security info is projected from the principal and cached with its TTL."""
        principal = make_principal(failed_login_attempts=2, security_stamp="s1")
        user_repo.find_by_id.return_value = principal

        info = await user_cache.get_security_info(principal.id)

        assert info == principal.security_info()
        ttl = await redis_client.ttl(f"test:user:security:{principal.id}")
        assert 0 < ttl <= 900

    @pytest.mark.asyncio
    async def test_concurrent_security_misses_fill_once(self, user_cache, user_repo):
        """The security namespace lock also serializes fills."""
        principal = make_principal()

        async def slow_find(user_id):
            await asyncio.sleep(0.01)
            return principal

        user_repo.find_by_id.side_effect = slow_find

        await asyncio.gather(
            *(user_cache.get_security_info(principal.id) for _ in range(10))
        )

        user_repo.find_by_id.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_category_admin_permissions(self, user_cache, admin_repo):
        """Category admins get their role and their category."""
        user_id = uuid7()
        admin_repo.find_by_user_id.return_value = AdminAssignment(
            user_id=user_id, role=AdminRole.CATEGORY_ADMIN, assigned_category=7
        )

        permissions = await user_cache.get_permissions(user_id)

        assert permissions == ["role:category_admin", "category:7"]

    @pytest.mark.asyncio
    async def test_non_admin_has_no_permissions(self, user_cache, admin_repo):
        """Principals without an assignment get an empty, cached list."""
        user_id = uuid7()

        assert await user_cache.get_permissions(user_id) == []
        assert await user_cache.get_permissions(user_id) == []

        admin_repo.find_by_user_id.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_permissions(self, user_cache, admin_repo):
        """refresh_permissions picks up a new assignment."""
        user_id = uuid7()
        await user_cache.get_permissions(user_id)
        admin_repo.find_by_user_id.return_value = AdminAssignment(
            user_id=user_id, role=AdminRole.SUPER
        )

        assert await user_cache.refresh_permissions(user_id) == ["role:super"]


@pytest.mark.unit
class TestGetMany:
    """Test batch profile reads."""

    @pytest.mark.asyncio
    async def test_single_fetch_for_all_misses(
        self, user_cache, user_repo, local_store, cache_service
    ):
        """Fast-tier and shared-tier hits are not refetched; the rest is one query."""
        in_fast = make_principal()
        in_shared = make_principal()
        missing = make_principal()
        unknown = uuid7()
        local_store.put(in_fast)
        await user_cache.set_profile(in_shared)
        local_store.discard(in_shared.id)
        user_repo.find_many.return_value = [missing]

        found = await user_cache.get_many([in_fast.id, in_shared.id, missing.id, unknown])

        assert found == {
            in_fast.id: in_fast,
            in_shared.id: in_shared,
            missing.id: missing,
        }
        user_repo.find_many.assert_awaited_once()
        assert set(user_repo.find_many.await_args.args[0]) == {missing.id, unknown}
        assert missing.id in local_store

    @pytest.mark.asyncio
    async def test_negative_hits_not_refetched(self, user_cache, user_repo, local_store):
        """Unknown ids from a previous batch are served from the null entries."""
        unknown = uuid7()
        await user_cache.get_many([unknown])

        found = await user_cache.get_many([unknown])

        assert found == {}
        user_repo.find_many.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicates_and_all_fast_tier(self, user_cache, user_repo, local_store):
        """Fully served batches never touch the store."""
        principal = make_principal()
        local_store.put(principal)

        found = await user_cache.get_many([principal.id, principal.id])

        assert found == {principal.id: principal}
        user_repo.find_many.assert_not_awaited()


@pytest.mark.unit
class TestInvalidation:
    """Test invalidation operations."""

    @pytest.mark.asyncio
    async def test_invalidate_all_leaves_no_residue(
        self, user_cache, user_repo, local_store, redis_client
    ):
        """All three namespaces and the fast tier are cleared."""
        principal = make_principal()
        user_repo.find_by_id.return_value = principal
        await user_cache.get_profile(principal.id)
        await user_cache.get_security_info(principal.id)
        await user_cache.get_permissions(principal.id)

        await user_cache.invalidate_all(principal.id)

        assert principal.id not in local_store
        for key in CacheKeys(prefix="test").user_namespaces(principal.id):
            assert await redis_client.exists(key) == 0

    @pytest.mark.asyncio
    async def test_invalidate_many(self, user_cache, local_store, redis_client):
        """Several principals are cleared with one bulk delete."""
        principals = [make_principal() for _ in range(3)]
        for principal in principals:
            await user_cache.set_profile(principal)

        await user_cache.invalidate_many([p.id for p in principals])

        assert len(local_store) == 0
        for principal in principals:
            assert await redis_client.exists(f"test:user:{principal.id}") == 0

    @pytest.mark.asyncio
    async def test_invalidate_security_info_only(self, user_cache, user_repo, redis_client):
        """Dropping security info keeps the profile cached."""
        principal = make_principal()
        user_repo.find_by_id.return_value = principal
        await user_cache.get_profile(principal.id)
        await user_cache.get_security_info(principal.id)

        await user_cache.invalidate_security_info(principal.id)

        assert await redis_client.exists(f"test:user:security:{principal.id}") == 0
        assert await redis_client.exists(f"test:user:{principal.id}") == 1


@pytest.mark.unit
class TestInvalidationDuringFill:
    """Loads that overlap an invalidation are not cached."""

    @pytest.fixture
    def gate(self):
        return asyncio.Event(), asyncio.Event()

    @pytest.mark.asyncio
    async def test_profile_fill_dropped(
        self, user_cache, user_repo, local_store, redis_client, gate
    ):
        """The pre-invalidation profile reaches the caller but neither tier."""
        started, release = gate
        principal = make_principal()

        async def slow_find(user_id):
            started.set()
            await release.wait()
            return principal

        user_repo.find_by_id.side_effect = slow_find
        task = asyncio.create_task(user_cache.get_profile(principal.id))
        await started.wait()

        await user_cache.invalidate_all(principal.id)
        release.set()

        assert await task == principal
        assert principal.id not in local_store
        assert await redis_client.exists(f"test:user:{principal.id}") == 0
        assert local_store.fills_in_flight == 0

    @pytest.mark.asyncio
    async def test_next_fill_after_invalidation_is_cached(
        self, user_cache, user_repo, local_store, redis_client, gate
    ):
        """Only fills open at invalidation time are affected."""
        started, release = gate
        principal = make_principal()

        async def slow_find(user_id):
            started.set()
            await release.wait()
            return principal

        user_repo.find_by_id.side_effect = slow_find
        task = asyncio.create_task(user_cache.get_profile(principal.id))
        await started.wait()
        await user_cache.invalidate_all(principal.id)
        release.set()
        await task

        await user_cache.get_profile(principal.id)

        assert principal.id in local_store
        assert await redis_client.exists(f"test:user:{principal.id}") == 1

    @pytest.mark.asyncio
    async def test_security_fill_dropped(self, user_cache, user_repo, redis_client, gate):
        """invalidate_security_info during a load leaves the key absent."""
        started, release = gate
        principal = make_principal()

        async def slow_find(user_id):
            started.set()
            await release.wait()
            return principal

        user_repo.find_by_id.side_effect = slow_find
        task = asyncio.create_task(user_cache.get_security_info(principal.id))
        await started.wait()

        await user_cache.invalidate_security_info(principal.id)
        release.set()

        assert (await task).security_stamp == principal.security_stamp
        assert await redis_client.exists(f"test:user:security:{principal.id}") == 0

    @pytest.mark.asyncio
    async def test_batch_fill_skips_invalidated_ids(
        self, user_cache, user_repo, local_store, redis_client, gate
    ):
        """Only the invalidated id of a batch is kept out of the tiers."""
        started, release = gate
        kept, dropped = make_principal(), make_principal()

        async def slow_find_many(user_ids):
            started.set()
            await release.wait()
            return [kept, dropped]

        user_repo.find_many.side_effect = slow_find_many
        task = asyncio.create_task(user_cache.get_many([kept.id, dropped.id]))
        await started.wait()

        await user_cache.invalidate_all(dropped.id)
        release.set()

        assert await task == {kept.id: kept, dropped.id: dropped}
        assert kept.id in local_store
        assert dropped.id not in local_store
        assert await redis_client.exists(f"test:user:{kept.id}") == 1
        assert await redis_client.exists(f"test:user:{dropped.id}") == 0
        assert local_store.fills_in_flight == 0


@pytest.mark.unit
class TestFallback:
    """Test behaviour when the cache layer raises."""

    @pytest.fixture
    def broken_cache(self):
        cache = MagicMock()
        cache.keys = CacheKeys(prefix="broken")
        cache.lookup = AsyncMock(side_effect=RuntimeError("cache exploded"))
        cache.get_many = AsyncMock(side_effect=RuntimeError("cache exploded"))
        return cache

    @pytest.fixture
    def fallback_cache(self, broken_cache, local_store, user_repo, admin_repo, logger):
        return UserCache(
            cache=broken_cache,
            local_store=local_store,
            users=user_repo,
            admins=admin_repo,
            logger=logger,
        )

    @pytest.mark.asyncio
    async def test_profile_falls_back_to_store(self, fallback_cache, user_repo, logger):
        """A raising cache is logged and answered from the repository."""
        principal = make_principal()
        user_repo.find_by_id.return_value = principal

        assert await fallback_cache.get_profile(principal.id) == principal
        logger.error.assert_called_once()

    @pytest.mark.asyncio
    async def test_permissions_fall_back_to_store(self, fallback_cache, admin_repo):
        """Permissions are still derived when the cache is down."""
        user_id = uuid7()
        admin_repo.find_by_user_id.return_value = AdminAssignment(
            user_id=user_id, role=AdminRole.REPORT_ADMIN
        )

        assert await fallback_cache.get_permissions(user_id) == ["role:report_admin"]

    @pytest.mark.asyncio
    async def test_get_many_falls_back_to_store(self, fallback_cache, user_repo):
        """Batch reads fall back to a single find_many."""
        principal = make_principal()
        user_repo.find_many.return_value = [principal]

        assert await fallback_cache.get_many([principal.id]) == {principal.id: principal}


@pytest.mark.unit
class TestStatsAndLocks:
    """Test hit rate and lock striping."""

    @pytest.mark.asyncio
    async def test_hit_rate(self, user_cache, user_repo):
        """One miss then one hit in the shared tier gives 0.5."""
        user_id = uuid7()
        await user_cache.get_security_info(user_id)
        await user_cache.get_security_info(user_id)

        assert user_cache.hit_rate() == 0.5

    def test_striped_locks_are_stable_per_key(self):
        """The same id always maps to the same lock."""
        locks = StripedLocks(4)
        user_id = uuid7()

        assert locks.for_key(user_id) is locks.for_key(user_id)
        assert len(locks) == 4

    def test_striped_locks_require_one_stripe(self):
        """Zero stripes is a configuration error."""
        with pytest.raises(ValueError):
            StripedLocks(0)
