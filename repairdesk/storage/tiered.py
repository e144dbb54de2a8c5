"""
Primary/fallback composition of storage tiers.

TieredStore applies one write policy to every collection:

- the primary (remote) call is best-effort: a TransportError becomes a
  StoreWarning and the operation carries on locally;
- a ConflictError from the primary aborts before the fallback is touched;
- the fallback (local cache) mirror always runs; its failures are logged and
  never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List

from repairdesk.domain.models import Collection, Entity
from repairdesk.errors import TransportError
from repairdesk.notifications import StoreWarning, WarningSink
from repairdesk.storage.abstract import RemoteStore
from repairdesk.storage.local import LocalCacheTier
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)

# Local cache failures: file system errors and unserializable payloads.
_CACHE_ERRORS = (OSError, TypeError, ValueError)


@dataclass
class LoadResult:
    collection: Collection
    entities: List[Entity]
    source: str

    @property
    def from_fallback(self) -> bool:
        return self.source != "remote"


class TieredStore:
    def __init__(self, primary: RemoteStore, fallback: LocalCacheTier, sink: WarningSink) -> None:
        self.primary = primary
        self.fallback = fallback
        self._sink = sink

    async def _on_primary(
        self,
        operation: str,
        collection: Collection,
        key: str | None,
        call: Callable[[], Awaitable[None]],
    ) -> bool:
        try:
            await call()
        except TransportError as exc:
            self._sink.emit(
                StoreWarning(
                    operation=operation,
                    collection=collection.value,
                    key=key,
                    message=f"remote store unavailable, change kept locally only ({exc})",
                )
            )
            return False
        return True

    async def _on_fallback(
        self,
        operation: str,
        collection: Collection,
        call: Callable[[], Awaitable[None]],
    ) -> bool:
        try:
            await call()
        except _CACHE_ERRORS:
            log.exception(
                "Local cache %s failed",
                operation,
                extra={"collection": collection.value, "path": str(self.fallback.cache.path)},
            )
            return False
        return True

    async def read_fallback(self, collection: Collection) -> List[Entity]:
        try:
            return await self.fallback.read(collection)
        except _CACHE_ERRORS:
            log.exception("Local cache read failed", extra={"collection": collection.value})
            return []

    async def load(self, collection: Collection) -> LoadResult:
        """
        Read `collection` from the primary, falling back to the cached snapshot.

        A fallback for one collection does not force it for the others.
        """
        try:
            entities = await self.primary.read(collection)
        except TransportError as exc:
            self._sink.emit(
                StoreWarning(
                    operation="load",
                    collection=collection.value,
                    message=f"remote store unavailable, using local cache ({exc})",
                )
            )
            return LoadResult(collection, await self.read_fallback(collection), self.fallback.name)

        await self._refresh_fallback(collection, entities)
        return LoadResult(collection, entities, self.primary.name)

    async def _refresh_fallback(self, collection: Collection, remote: List[Entity]) -> None:
        cached = await self.read_fallback(collection)
        remote_keys = {e.key for e in remote}
        pending = [e.key for e in cached if e.key not in remote_keys]
        if pending:
            # Never overwrite entries the remote does not have yet.
            log.info(
                "Keeping local snapshot with entries missing remotely",
                extra={"collection": collection.value, "pending": len(pending)},
            )
            return
        await self._on_fallback("refresh", collection, lambda: self.fallback.replace(collection, remote))

    async def write(self, collection: Collection, entity: Entity, *, overwrite: bool = True) -> bool:
        """
        Write to both tiers. Returns whether the primary accepted the write.

        Raises ConflictError (from the primary) with no tier modified.
        """
        remote_ok = await self._on_primary(
            "write",
            collection,
            entity.key,
            lambda: self.primary.write(collection, entity, overwrite=overwrite),
        )
        await self._on_fallback("write", collection, lambda: self.fallback.write(collection, entity))
        return remote_ok

    async def delete(self, collection: Collection, key: str) -> bool:
        remote_ok = await self._on_primary(
            "delete", collection, key, lambda: self.primary.delete(collection, key)
        )
        await self._on_fallback("delete", collection, lambda: self.fallback.delete(collection, key))
        return remote_ok


__all__ = ["LoadResult", "TieredStore"]
