from __future__ import annotations

from typing import Any, List

import pytest
from psycopg_pool import PoolTimeout
from typer.testing import CliRunner

from repairdesk import main, runtime
from repairdesk.infrastructure import db_factory
from repairdesk.policy import AuthorizationPolicy
from repairdesk.schema import SchemaInitializer


class _FakeAsyncPool:
    instances: List["_FakeAsyncPool"] = []

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.open_calls: List[dict] = []
        self.closed = False
        _FakeAsyncPool.instances.append(self)

    async def open(self, wait: bool = False, timeout: float = 30.0) -> None:
        self.open_calls.append({"wait": wait, "timeout": timeout})

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_pools():
    _FakeAsyncPool.instances = []


def test_create_async_pool_is_closed_and_sized(monkeypatch, settings):
    monkeypatch.setattr(db_factory, "AsyncConnectionPool", _FakeAsyncPool)

    pool = db_factory.create_async_pool(settings, dsn_override="postgresql://x/y")

    assert pool.kwargs["conninfo"] == "postgresql://x/y"
    assert pool.kwargs["open"] is False
    assert pool.kwargs["min_size"] == settings.db_pool_min_size
    assert pool.kwargs["max_size"] == settings.db_pool_max_size
    assert pool.open_calls == []


@pytest.mark.asyncio
async def test_open_async_pool_waits_for_connections(monkeypatch, settings):
    monkeypatch.setattr(db_factory, "AsyncConnectionPool", _FakeAsyncPool)

    pool = await db_factory.open_async_pool(settings)

    assert pool.open_calls == [{"wait": True, "timeout": settings.db_connect_timeout}]


@pytest.mark.asyncio
async def test_connect_remote_degrades_to_background_pool(monkeypatch, settings):
    async def unreachable(*args, **kwargs):
        raise PoolTimeout("no database")

    monkeypatch.setattr(runtime, "open_async_pool", unreachable)
    monkeypatch.setattr(db_factory, "AsyncConnectionPool", _FakeAsyncPool)

    pool = await runtime.connect_remote(settings)

    assert pool.open_calls == [{"wait": False, "timeout": 30.0}]


def test_build_repository_wires_settings(remote, settings):
    settings = settings.model_copy(update={"strict_authorization": True})

    repository = runtime.build_repository(remote, settings)

    assert isinstance(repository.policy, AuthorizationPolicy)
    assert repository.policy.strict is True
    assert isinstance(repository._initializer, SchemaInitializer)
    assert runtime.build_repository(remote, settings, initialize=False)._initializer is None


@pytest.mark.asyncio
async def test_open_repository_closes_pool(monkeypatch, settings, remote):
    pool = _FakeAsyncPool()

    async def connect(_settings):
        return pool

    monkeypatch.setattr(runtime, "connect_remote", connect)
    monkeypatch.setattr(runtime, "PostgresRemoteStore", lambda _pool: remote)

    async with runtime.open_repository(settings) as repository:
        assert repository.list_technicians() == settings.seed_technicians
        assert not pool.closed

    assert pool.closed


def test_cli_info_prints_configuration():
    result = CliRunner().invoke(main.app, ["info"])
    assert result.exit_code == 0
    assert "strict_authorization=" in result.output
