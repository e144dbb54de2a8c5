"""
Wiring for a repairdesk session.

`open_repository` builds the remote pool, both storage tiers, the schema
initializer and the repository, bootstraps it, and releases the pool on exit.

Usage:
    async with open_repository() as repo:
        print(repo.list())
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import psycopg
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from repairdesk.config import Settings, get_settings
from repairdesk.infrastructure.db_factory import close_async_pool, create_async_pool, open_async_pool
from repairdesk.notifications import WarningCallback
from repairdesk.policy import AuthorizationPolicy
from repairdesk.repository import RecordRepository
from repairdesk.schema import SchemaInitializer
from repairdesk.storage.local import LocalCache, LocalCacheTier
from repairdesk.storage.remote import PostgresRemoteStore
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)


async def connect_remote(settings: Settings) -> AsyncConnectionPool:
    """
    Open the remote pool, or a background-connecting one if the database is down.

    The fallback pool keeps retrying in the background, so a store that comes
    back mid-session is picked up; until then each call fails after the
    connect timeout and the repository degrades to local-only operation.
    """
    try:
        return await open_async_pool(settings)
    except (PoolTimeout, psycopg.OperationalError, OSError) as exc:
        log.warning(
            "Remote store unreachable at startup; continuing with local cache",
            extra={"host": settings.db_host, "error": str(exc)},
        )
    pool = create_async_pool(settings)
    await pool.open(wait=False)
    return pool


def build_repository(
    remote: PostgresRemoteStore,
    settings: Settings,
    on_warning: Optional[WarningCallback] = None,
    initialize: bool = True,
) -> RecordRepository:
    cache = LocalCacheTier(LocalCache(settings.local_cache_path))
    return RecordRepository(
        remote,
        cache,
        policy=AuthorizationPolicy(strict=settings.strict_authorization),
        initializer=SchemaInitializer(remote, cache, settings) if initialize else None,
        on_warning=on_warning,
    )


@asynccontextmanager
async def open_repository(
    settings: Optional[Settings] = None,
    on_warning: Optional[WarningCallback] = None,
    initialize: bool = True,
) -> AsyncIterator[RecordRepository]:
    settings = settings or get_settings()
    pool = await connect_remote(settings)
    try:
        repository = build_repository(
            PostgresRemoteStore(pool), settings, on_warning=on_warning, initialize=initialize
        )
        await repository.bootstrap()
        yield repository
    finally:
        await close_async_pool(pool)


__all__ = ["build_repository", "connect_remote", "open_repository"]
