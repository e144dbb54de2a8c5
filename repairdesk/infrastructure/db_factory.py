"""
Database connection factory utilities for repairdesk.

Builds the DSN from settings and creates the psycopg async connection pool the
remote store runs on. The pool is created closed and opened explicitly, with
retry logic for transient connection failures using tenacity. Pools are owned
by whoever opened them (see repairdesk.runtime); nothing here is global.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg_pool import AsyncConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from repairdesk.config import Settings, get_settings
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def create_async_pool(
    settings: Optional[Settings] = None,
    dsn_override: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Create (but do not open) the asynchronous connection pool.

    Parameters
    ----------
    settings : Settings | None
        Source of pool sizing and the connect timeout. Defaults to get_settings().
    dsn_override : str | None
        Use this DSN instead of composing one from settings.

    Returns
    -------
    AsyncConnectionPool
        A closed pool; the caller opens it with `await pool.open()`.
    """
    settings = settings or get_settings()
    return AsyncConnectionPool(
        conninfo=dsn_override or build_dsn(settings),
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        timeout=settings.db_connect_timeout,
        kwargs={"connect_timeout": max(1, int(settings.db_connect_timeout))},
        open=False,
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((PoolTimeout, psycopg.OperationalError, OSError)),
    reraise=True,
)
async def open_async_pool(
    settings: Optional[Settings] = None,
    dsn_override: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Create a pool, open it, and wait until its minimum connections are ready.

    psycopg closes a pool whose initial wait times out, so every attempt
    builds a fresh one.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    PoolTimeout
        If the database stays unreachable after all retry attempts.
    """
    settings = settings or get_settings()
    pool = create_async_pool(settings, dsn_override)
    log.debug("Opening remote connection pool", extra={"timeout": settings.db_connect_timeout})
    await pool.open(wait=True, timeout=settings.db_connect_timeout)
    return pool


async def close_async_pool(pool: AsyncConnectionPool) -> None:
    """Close the pool, logging (not raising) shutdown failures."""
    try:
        await pool.close()
    except (psycopg.Error, OSError):
        log.exception("Failed to close remote connection pool")


__all__ = [
    "build_dsn",
    "close_async_pool",
    "create_async_pool",
    "open_async_pool",
]
