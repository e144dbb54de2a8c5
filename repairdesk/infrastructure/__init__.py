"""
Infrastructure package for repairdesk.

Centralizes database connectivity concerns (DSN building, async pool
lifecycle). Keep this layer focused on I/O and resource management, decoupled
from repository and policy logic.
"""

from repairdesk.infrastructure.db_factory import (
    build_dsn,
    close_async_pool,
    create_async_pool,
    open_async_pool,
)

__all__ = [
    "build_dsn",
    "close_async_pool",
    "create_async_pool",
    "open_async_pool",
]
