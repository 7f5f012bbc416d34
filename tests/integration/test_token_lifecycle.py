"""End-to-end token lifecycle against SQLite and fakeredis.

Tests cover:
- Issue, validate, logout, then a rotation attempt is rejected as revoked
- Rotation replay detection revokes the whole rotation chain
- Concurrent rotations of one token: exactly one succeeds
- Device limit, revoke_all, cleanup and access token blacklisting
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio

from tests.conftest import insert_user, make_principal
from tradeauth.application import TokenBlacklist, TokenService
from tradeauth.core.enums import ErrorCode
from tradeauth.core.result import Failure, Success
from tradeauth.domain.enums import ReusePolicy
from tradeauth.domain.protocols import NewRefreshToken
from tradeauth.infrastructure.persistence.models import User
from tradeauth.infrastructure.persistence.repositories import (
    RefreshTokenRepository,
    UserRepository,
)


@pytest.fixture
def blacklist(cache_service, logger):
    return TokenBlacklist(cache_service, logger, leeway_seconds=60)


@pytest.fixture
def service_factory(database, jwt_service, token_generator, blacklist, logger):
    """Open a session and build a TokenService on it."""

    @asynccontextmanager
    async def open_service(**options):
        async with database.get_session() as session:
            yield TokenService(
                refresh_tokens=RefreshTokenRepository(session),
                users=UserRepository(session),
                jwt_service=jwt_service,
                token_generator=token_generator,
                blacklist=blacklist,
                logger=logger,
                **options,
            )

    return open_service


@pytest_asyncio.fixture
async def principal(database):
    principal = make_principal()
    await insert_user(database, principal)
    return principal


@pytest.mark.integration
class TestLogoutFlow:
    """Issue, validate, logout, rotate."""

    @pytest.mark.asyncio
    async def test_rotation_after_logout_is_revoked(self, service_factory, principal):
        """A logged-out refresh token cannot be rotated."""
        async with service_factory() as service:
            issued = await service.issue_pair(principal, "laptop")
            assert isinstance(issued, Success)
            pair = issued.value

            validated = service.validate(pair.access_token)
            assert isinstance(validated, Success)
            assert validated.value.subject == principal.id

            assert await service.logout(pair.refresh_token, access_claims=validated.value)

        async with service_factory() as service:
            result = await service.rotate(pair.refresh_token, "laptop")

            assert isinstance(result, Failure)
            assert result.error.code == ErrorCode.TOKEN_REVOKED
            assert await service.is_blacklisted(validated.value.jti) is True


@pytest.mark.integration
class TestReuseDetection:
    """Replay of a rotated refresh token."""

    @pytest.mark.asyncio
    async def test_replay_revokes_successor(self, service_factory, principal, logger):
        """Replaying R after R -> R2 fails and revokes R2 as well."""
        async with service_factory() as service:
            original = (await service.issue_pair(principal, "phone")).value
            rotated = await service.rotate(original.refresh_token, "phone")
            assert isinstance(rotated, Success)

            replay = await service.rotate(original.refresh_token, "phone")

            assert isinstance(replay, Failure)
            assert replay.error.code == ErrorCode.TOKEN_REUSE_DETECTED
            assert await service.list_active(principal.id) == []
            logger.critical.assert_called_once()

            successor = await service.rotate(rotated.value.refresh_token, "phone")
            assert successor.error.code == ErrorCode.TOKEN_REVOKED

    @pytest.mark.asyncio
    async def test_chain_policy_spares_other_devices(self, service_factory, principal):
        """CHAIN only revokes the replayed lineage."""
        async with service_factory() as service:
            phone = (await service.issue_pair(principal, "phone")).value
            laptop = (await service.issue_pair(principal, "laptop")).value
            await service.rotate(phone.refresh_token, "phone")

            await service.rotate(phone.refresh_token, "phone")

            active = await service.list_active(principal.id)
            assert [token.token for token in active] == [laptop.refresh_token]

    @pytest.mark.asyncio
    async def test_all_sessions_policy(self, service_factory, principal):
        """ALL_SESSIONS revokes every session of the principal."""
        async with service_factory(reuse_policy=ReusePolicy.ALL_SESSIONS) as service:
            phone = (await service.issue_pair(principal, "phone")).value
            await service.issue_pair(principal, "laptop")
            await service.rotate(phone.refresh_token, "phone")

            await service.rotate(phone.refresh_token, "phone")

            assert await service.list_active(principal.id) == []


@pytest.mark.integration
class TestConcurrentRotation:
    """Two requests rotating the same token at once."""

    @pytest.mark.asyncio
    async def test_exactly_one_rotation_wins(self, service_factory, principal):
        """One caller gets a new pair, the other is rejected."""
        async with service_factory() as service:
            pair = (await service.issue_pair(principal, "tablet")).value

        async def attempt():
            async with service_factory() as service:
                return await service.rotate(pair.refresh_token, "tablet")

        results = await asyncio.gather(attempt(), attempt())

        successes = [result for result in results if isinstance(result, Success)]
        failures = [result for result in results if isinstance(result, Failure)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert failures[0].error.code in {
            ErrorCode.TOKEN_REVOKED,
            ErrorCode.TOKEN_REUSE_DETECTED,
        }


@pytest.mark.integration
class TestSessionManagement:
    """Device limit, revoke_all and cleanup."""

    @pytest.mark.asyncio
    async def test_device_limit_revokes_oldest(self, service_factory, principal):
        """Issuing past the limit revokes the oldest session."""
        async with service_factory(max_active_devices=2) as service:
            first = (await service.issue_pair(principal, "d1")).value
            second = (await service.issue_pair(principal, "d2")).value
            third = (await service.issue_pair(principal, "d3")).value

            active = [token.token for token in await service.list_active(principal.id)]
            rejected = await service.rotate(first.refresh_token, "d1")

        assert active == [second.refresh_token, third.refresh_token]
        assert rejected.error.code == ErrorCode.TOKEN_REVOKED

    @pytest.mark.asyncio
    async def test_revoke_all(self, service_factory, principal):
        """Every session of the principal is revoked."""
        async with service_factory() as service:
            await service.issue_pair(principal, "d1")
            await service.issue_pair(principal, "d2")

            assert await service.revoke_all(principal.id) == 2
            assert await service.list_active(principal.id) == []

    @pytest.mark.asyncio
    async def test_revoke_cascades_to_successors(self, service_factory, principal):
        """Revoking a rotated token also revokes what it was rotated into."""
        async with service_factory() as service:
            original = (await service.issue_pair(principal, "d1")).value
            rotated = (await service.rotate(original.refresh_token, "d1")).value

            assert await service.revoke(original.refresh_token) is True
            result = await service.rotate(rotated.refresh_token, "d1")

        assert result.error.code == ErrorCode.TOKEN_REVOKED

    @pytest.mark.asyncio
    async def test_cleanup_respects_retention(self, service_factory, principal, database):
        """Only tokens expired longer than the retention window are deleted."""
        async with database.get_session() as session:
            repo = RefreshTokenRepository(session)
            for value, age in (("ancient", 30), ("recent", 1)):
                await repo.save(
                    NewRefreshToken(
                        user_id=principal.id,
                        token=value,
                        device_id="old-device",
                        expires_at=datetime.now(UTC) - timedelta(days=age),
                    )
                )

        async with service_factory(retention=timedelta(days=7)) as service:
            assert await service.cleanup_expired() == 1
            expired = await service.rotate("recent", "old-device")

        assert expired.error.code == ErrorCode.TOKEN_EXPIRED

    @pytest.mark.asyncio
    async def test_unknown_and_inactive_look_the_same(self, service_factory, database):
        """Unknown tokens and deactivated owners both report TOKEN_INVALID."""
        inactive = make_principal()
        await insert_user(database, inactive)
        async with service_factory() as service:
            pair = (await service.issue_pair(inactive, "d1")).value
        async with database.get_session() as session:
            (await session.get(User, inactive.id)).is_active = False

        async with service_factory() as service:
            unknown = await service.rotate("never-issued", "d1")
            deactivated = await service.rotate(pair.refresh_token, "d1")

        assert unknown.error.code == deactivated.error.code == ErrorCode.TOKEN_INVALID
        assert unknown.error.message == deactivated.error.message


@pytest.mark.integration
class TestAccessTokenBlacklist:
    """Blacklist entries and their lifetime."""

    @pytest.mark.asyncio
    async def test_blacklist_ttl_covers_remaining_lifetime(
        self, service_factory, principal, redis_client, cache_keys
    ):
        """The entry lives at least until the token would expire."""
        async with service_factory() as service:
            pair = (await service.issue_pair(principal, "d1")).value
            claims = service.validate(pair.access_token).value

            assert await service.blacklist_claims(claims) is True

        ttl = await redis_client.ttl(cache_keys.blacklist(claims.jti))
        assert ttl >= claims.remaining_seconds()
        assert ttl <= 120 * 60 + 60

    @pytest.mark.asyncio
    async def test_blacklist_survives_cache_clear(self, service_factory, cache_service):
        """clear_all does not resurrect revoked access tokens."""
        async with service_factory() as service:
            await service.blacklist("jti-1", 300)
            await cache_service.clear_all()

            assert await service.is_blacklisted("jti-1") is True
            assert await service.is_blacklisted("jti-2") is False
