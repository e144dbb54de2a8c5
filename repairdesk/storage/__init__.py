"""
Storage tiers for repairdesk: the PostgreSQL remote store, the local JSON
cache, and the coordinator that composes them.
"""

from repairdesk.storage.abstract import RemoteStore, StoreTier
from repairdesk.storage.local import LocalCache, LocalCacheTier
from repairdesk.storage.remote import PostgresRemoteStore
from repairdesk.storage.tiered import LoadResult, TieredStore

__all__ = [
    "LoadResult",
    "LocalCache",
    "LocalCacheTier",
    "PostgresRemoteStore",
    "RemoteStore",
    "StoreTier",
    "TieredStore",
]
