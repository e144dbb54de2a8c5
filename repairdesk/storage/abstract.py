"""
Storage tier interfaces for repairdesk.

Each backend (the remote database, the local JSON cache) is a tier exposing
the same read/write/delete capability over the three entity collections.
TieredStore composes a primary and a fallback tier; the remote tier adds the
existence checks and schema hooks the initializer needs.
"""

from __future__ import annotations

import abc
from typing import List, Optional, Protocol, runtime_checkable

from repairdesk.domain.models import Collection, Entity


@runtime_checkable
class StoreTier(Protocol):
    """
    Common interface all storage tiers implement.

    Attributes
    ----------
    name : str
        A short identifier used in logs and warnings.
    """

    name: str

    async def read(self, collection: Collection) -> List[Entity]:
        """Return every entity in `collection`."""
        ...

    async def write(self, collection: Collection, entity: Entity, *, overwrite: bool = True) -> None:
        """
        Persist `entity`, keyed by its collection key.

        With overwrite=False an existing key raises ConflictError.
        """
        ...

    async def delete(self, collection: Collection, key: str) -> None:
        """Remove the entity with `key`; a missing key is not an error."""
        ...


class RemoteStore(abc.ABC):
    """
    The durable primary tier.

    Implementations translate driver failures into TransportError and
    duplicate keys into ConflictError.
    """

    name: str = "remote"

    @abc.abstractmethod
    async def read(self, collection: Collection) -> List[Entity]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def write(
        self, collection: Collection, entity: Entity, *, overwrite: bool = True
    ) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, collection: Collection, key: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, collection: Collection, key: str) -> Optional[Entity]:  # pragma: no cover - interface only
        """Fetch a single entity by key."""
        raise NotImplementedError

    async def exists(self, collection: Collection, key: str) -> bool:
        return await self.get(collection, key) is not None

    @abc.abstractmethod
    async def ensure_collections(self) -> None:  # pragma: no cover - interface only
        """Create missing tables and columns; safe to call repeatedly."""
        raise NotImplementedError


__all__ = ["RemoteStore", "StoreTier"]
