"""
Local fallback cache.

LocalCache is a small persisted key-value document (one JSON file) holding the
keys `repairs`, `technicians`, `users` and `session`. LocalCacheTier adapts it
to the StoreTier interface so the repository can mirror every write into it
and fall back to its last snapshot when the remote store is unreachable.

File I/O runs in a worker thread via asyncio.to_thread. Replacement is atomic
(temp file + os.replace), but two processes sharing one file are not
coordinated: the later write wins.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from repairdesk.domain.models import Collection, Entity, RepairRecord, Technician, UserAccount
from repairdesk.errors import ConflictError
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)

SESSION_KEY = "session"
CACHE_KEYS = frozenset({c.value for c in Collection} | {SESSION_KEY})


class LocalCache:
    """
    JSON-file key-value store.

    A missing file reads as empty. A corrupt file is logged and also reads as
    empty; the next write replaces it.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            log.error("Local cache is not valid JSON; treating as empty", extra={"path": str(self.path)})
            return {}
        if not isinstance(data, dict):
            log.error("Local cache root is not an object; treating as empty", extra={"path": str(self.path)})
            return {}
        return data

    def _dump(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def _update(self, mutate: Callable[[Dict[str, Any]], None]) -> None:
        data = self._load()
        mutate(data)
        self._dump(data)

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in CACHE_KEYS:
            raise ValueError(f"Unknown cache key '{key}'. Known: {', '.join(sorted(CACHE_KEYS))}")

    async def get(self, key: str, default: Any = None) -> Any:
        self._check_key(key)
        data = await asyncio.to_thread(self._load)
        return data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        self._check_key(key)
        await asyncio.to_thread(self._update, lambda data: data.__setitem__(key, value))

    async def modify(self, key: str, mutate: Callable[[Any], Any]) -> None:
        """Replace the value under `key` with `mutate(current)` in one read-modify-write."""
        self._check_key(key)
        await asyncio.to_thread(self._update, lambda data: data.__setitem__(key, mutate(data.get(key))))

    async def remove(self, key: str) -> None:
        self._check_key(key)
        await asyncio.to_thread(self._update, lambda data: data.pop(key, None))


def _decode_repairs(raw: Any) -> List[Entity]:
    records: List[Entity] = []
    for item in raw or []:
        try:
            records.append(RepairRecord.model_validate(item))
        except PydanticValidationError:
            repair_id = item.get("id") if isinstance(item, dict) else None
            log.warning("Skipping unreadable cached repair", extra={"repair_id": repair_id})
    return records


def _decode_technicians(raw: Any) -> List[Entity]:
    names = (item.get("name") if isinstance(item, dict) else item for item in raw or [])
    return [Technician(name=name) for name in names if isinstance(name, str) and name]


def _decode_users(raw: Any) -> List[Entity]:
    users: List[Entity] = []
    for username, data in (raw or {}).items():
        try:
            users.append(UserAccount.model_validate({**data, "username": username}))
        except (PydanticValidationError, TypeError):
            log.warning("Skipping unreadable cached user", extra={"username": username})
    return users


def _encode(collection: Collection, entities: Iterable[Entity]) -> Any:
    if collection is Collection.REPAIRS:
        return [e.to_cache() for e in entities]  # type: ignore[union-attr]
    if collection is Collection.TECHNICIANS:
        return [e.name for e in entities]  # type: ignore[union-attr]
    return {
        e.username: {"id": e.id, "name": e.name, "role": e.role.value, "password": e.password}  # type: ignore[union-attr]
        for e in entities
    }


_DECODERS: Dict[Collection, Callable[[Any], List[Entity]]] = {
    Collection.REPAIRS: _decode_repairs,
    Collection.TECHNICIANS: _decode_technicians,
    Collection.USERS: _decode_users,
}


def _encode_one(collection: Collection, entity: Entity) -> Any:
    if collection is Collection.USERS:
        return _encode(collection, [entity])[entity.key]
    return _encode(collection, [entity])[0]


def _raw_key(collection: Collection, item: Any) -> Optional[str]:
    """Key of one raw cached list entry, readable or not."""
    if collection is Collection.TECHNICIANS and isinstance(item, str):
        return item
    if not isinstance(item, dict):
        return None
    key = item.get("id") if collection is Collection.REPAIRS else item.get("name")
    return key if isinstance(key, str) else None


def _unreadable(collection: Collection, raw: Any) -> Any:
    """Raw entries of `raw` that do not decode, in their cached shape."""
    if collection is Collection.USERS:
        return {
            username: data
            for username, data in (raw or {}).items()
            if not _decode_users({username: data})
        }
    return [item for item in raw or [] if not _DECODERS[collection]([item])]


class LocalCacheTier:
    """StoreTier over a LocalCache.

    Writes merge into the raw cached document, so entries that no longer
    decode stay on disk untouched.
    """

    name: str = "local"

    def __init__(self, cache: LocalCache) -> None:
        self.cache = cache

    async def read(self, collection: Collection) -> List[Entity]:
        raw = await self.cache.get(collection.value)
        return _DECODERS[collection](raw)

    async def replace(self, collection: Collection, entities: Iterable[Entity]) -> None:
        """Overwrite the snapshot for `collection`, keeping unreadable entries whose key is not replaced."""
        entities = list(entities)
        keys = {e.key for e in entities}

        def merge(raw: Any) -> Any:
            fresh = _encode(collection, entities)
            kept = _unreadable(collection, raw)
            if collection is Collection.USERS:
                return {**{k: v for k, v in kept.items() if k not in keys}, **fresh}
            return fresh + [item for item in kept if _raw_key(collection, item) not in keys]

        await self.cache.modify(collection.value, merge)

    async def write(self, collection: Collection, entity: Entity, *, overwrite: bool = True) -> None:
        encoded = _encode_one(collection, entity)

        def merge(raw: Any) -> Any:
            if collection is Collection.USERS:
                users = dict(raw or {})
                if entity.key in users and not overwrite:
                    raise ConflictError(f"{collection.value} '{entity.key}' already exists locally")
                users[entity.key] = encoded
                return users
            items = list(raw or [])
            for index, item in enumerate(items):
                if _raw_key(collection, item) == entity.key:
                    if not overwrite:
                        raise ConflictError(f"{collection.value} '{entity.key}' already exists locally")
                    items[index] = encoded
                    break
            else:
                items.append(encoded)
            return items

        await self.cache.modify(collection.value, merge)

    async def delete(self, collection: Collection, key: str) -> None:
        def merge(raw: Any) -> Any:
            if collection is Collection.USERS:
                return {k: v for k, v in (raw or {}).items() if k != key}
            return [item for item in raw or [] if _raw_key(collection, item) != key]

        await self.cache.modify(collection.value, merge)

    async def get(self, collection: Collection, key: str) -> Optional[Entity]:
        for entity in await self.read(collection):
            if entity.key == key:
                return entity
        return None


__all__ = ["CACHE_KEYS", "LocalCache", "LocalCacheTier", "SESSION_KEY"]
