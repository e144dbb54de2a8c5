"""
Pytest configuration for repairdesk.

Provides fixtures for:
- Settings pointed at a per-test cache file
- An in-memory remote store with switchable transport failures
- A bootstrapped repository with a deterministic clock
- Database connectivity for integration tests
"""

from __future__ import annotations

import datetime as dt
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import psycopg
import pytest
import pytest_asyncio

from repairdesk.config import Settings
from repairdesk.domain.models import Collection, Entity
from repairdesk.errors import ConflictError, TransportError
from repairdesk.repository import RecordRepository
from repairdesk.schema import SchemaInitializer
from repairdesk.storage.abstract import RemoteStore
from repairdesk.storage.local import LocalCache, LocalCacheTier

START = dt.datetime(2024, 5, 1, 8, 0, tzinfo=dt.timezone.utc)


class FakeRemoteStore(RemoteStore):
    """
    In-memory remote tier.

    Set `offline = True` to fail every call, or add entries such as "write" or
    "read:repairs" to `failing` to fail one operation (optionally for one
    collection) with TransportError.
    """

    name = "remote"

    def __init__(self) -> None:
        self.tables: Dict[Collection, Dict[str, Entity]] = {c: {} for c in Collection}
        self.offline = False
        self.failing: Set[str] = set()
        self.calls: List[str] = []
        self.ensure_calls = 0

    def _check(self, operation: str, collection: Optional[Collection] = None) -> None:
        label = f"{operation}:{collection.value}" if collection else operation
        self.calls.append(label)
        if self.offline or operation in self.failing or label in self.failing:
            raise TransportError(f"{label} refused")

    async def read(self, collection: Collection) -> List[Entity]:
        self._check("read", collection)
        return list(self.tables[collection].values())

    async def get(self, collection: Collection, key: str) -> Optional[Entity]:
        self._check("get", collection)
        return self.tables[collection].get(key)

    async def write(self, collection: Collection, entity: Entity, *, overwrite: bool = True) -> None:
        self._check("write", collection)
        if not overwrite and entity.key in self.tables[collection]:
            raise ConflictError(f"{collection.value} '{entity.key}' exists")
        self.tables[collection][entity.key] = entity

    async def delete(self, collection: Collection, key: str) -> None:
        self._check("delete", collection)
        self.tables[collection].pop(key, None)

    async def ensure_collections(self) -> None:
        self._check("ensure")
        self.ensure_calls += 1


class FakeClock:
    """Returns START, then advances one second per call."""

    def __init__(self, start: dt.datetime = START) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        current = self.now
        self.now = self.now + dt.timedelta(seconds=1)
        return current


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        local_cache_path=tmp_path / "cache.json",
        log_level="DEBUG",
    )


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def cache(settings: Settings) -> LocalCache:
    return LocalCache(settings.local_cache_path)


@pytest.fixture
def cache_tier(cache: LocalCache) -> LocalCacheTier:
    return LocalCacheTier(cache)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def initializer(remote: FakeRemoteStore, cache_tier: LocalCacheTier, settings: Settings) -> SchemaInitializer:
    return SchemaInitializer(remote, cache_tier, settings)


@pytest.fixture
def make_repository(remote, cache_tier, initializer, clock):
    """Factory for repositories sharing the same tiers (e.g. a second session)."""

    def _make(**kwargs: Any) -> RecordRepository:
        kwargs.setdefault("initializer", initializer)
        kwargs.setdefault("clock", clock)
        return RecordRepository(remote, cache_tier, **kwargs)

    return _make


@pytest_asyncio.fixture
async def repository(make_repository) -> RecordRepository:
    repo = make_repository()
    await repo.bootstrap()
    return repo


@pytest.fixture
def repair_fields() -> Dict[str, Any]:
    return {
        "date": "2024-05-01",
        "workWeek": "Week 1",
        "clientName": "Maria Santos",
        "contactNo": "09171234567",
        "unit": "iPhone 12",
        "declaredIssue": "No power",
        "repairCost": "1500.00",
        "technicianInCharge": "John Doe",
        "modeOfTransaction": "Walk-in",
        "shippingStatus": "Received",
        "repairStatus": "Processing",
        "repairReport": "",
    }


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "repairdesk_test"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def clean_tables(test_dsn: str, db_connection_available: bool):
    """
    Drop the three tables before and after each integration test.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    def _drop() -> None:
        with psycopg.connect(test_dsn) as conn:
            conn.execute("DROP TABLE IF EXISTS repairs, technicians, users")

    _drop()
    yield
    _drop()
