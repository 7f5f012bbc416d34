"""Shared pytest fixtures.

- Cache fixtures run against fakeredis (fresh instance per test)
- Database fixtures use a temporary SQLite file through aiosqlite so that
  several sessions can be open at once (rotation race tests)
- Loggers are MagicMock doubles of LoggerProtocol
"""

from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from sqlalchemy import event
from uuid_extensions import uuid7

from tradeauth.domain.entities import Principal
from tradeauth.infrastructure.cache import (
    CacheKeys,
    CacheMetrics,
    CacheService,
    LocalUserStore,
    RedisAdapter,
)
from tradeauth.infrastructure.persistence.database import Database
from tradeauth.infrastructure.persistence.models import User
from tradeauth.infrastructure.security import JWTService, RefreshTokenGenerator

TEST_SECRET_KEY = "test-secret-key-that-is-at-least-32-characters"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line(
        "markers", "integration: Integration tests with real database and cache adapters"
    )


# =============================================================================
# Helpers
# =============================================================================


def make_principal(**overrides) -> Principal:
    """Build a Principal with sensible defaults."""
    values = {
        "id": uuid7(),
        "email": f"trader-{uuid4().hex}@example.com",
        "password_hash": "hashed",
        "username": "trader",
        "credit_score": 72.5,
        "is_active": True,
        "email_verified": True,
    }
    values.update(overrides)
    return Principal(**values)


async def insert_user(database: Database, principal: Principal) -> UUID:
    """Persist a principal as a users row."""
    async with database.get_session() as session:
        session.add(
            User(
                id=principal.id,
                email=principal.email,
                username=principal.username,
                password_hash=principal.password_hash,
                credit_score=principal.credit_score,
                is_active=principal.is_active,
                email_verified=principal.email_verified,
                is_locked=principal.is_locked,
                lockout_end=principal.lockout_end,
                failed_login_attempts=principal.failed_login_attempts,
                security_stamp=principal.security_stamp,
                two_factor_enabled=principal.two_factor_enabled,
            )
        )
    return principal.id


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def logger():
    """LoggerProtocol double."""
    mock = MagicMock()
    mock.bind.return_value = mock
    return mock


@pytest_asyncio.fixture
async def redis_client():
    """Fresh in-memory Redis per test."""
    client = FakeRedis()
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def cache_adapter(redis_client):
    return RedisAdapter(redis_client=redis_client)


@pytest.fixture
def cache_keys():
    return CacheKeys(prefix="test")


@pytest.fixture
def cache_metrics():
    return CacheMetrics()


@pytest.fixture
def cache_service(cache_adapter, cache_keys, cache_metrics, logger):
    """CacheService over fakeredis."""
    return CacheService(
        cache_adapter,
        cache_keys,
        default_ttl=1800,
        null_ttl=300,
        logger=logger,
        metrics=cache_metrics,
    )


@pytest.fixture
def local_store():
    return LocalUserStore()


@pytest.fixture
def jwt_service():
    return JWTService(TEST_SECRET_KEY, expiration_minutes=120)


@pytest.fixture
def token_generator():
    return RefreshTokenGenerator(expiration_days=30)


@pytest_asyncio.fixture
async def database(tmp_path):
    """SQLite database with all tables created.

    Transactions start with BEGIN IMMEDIATE so concurrent sessions queue on
    the write lock instead of failing on lock upgrade.
    """
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'tradeauth.db'}")

    @event.listens_for(db.engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(db.engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    await db.create_all()
    yield db
    await db.close()

