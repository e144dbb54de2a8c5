"""
PostgreSQL remote store.

Executes CRUD against the three tables over a psycopg AsyncConnectionPool and
converts between column rows and domain models. Driver failures surface as
TransportError and unique-key violations as ConflictError; nothing
psycopg-specific leaks past this module.
"""

from __future__ import annotations

import datetime as dt
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from repairdesk.domain.models import Collection, Entity, RepairRecord, Technician, UserAccount
from repairdesk.errors import ConflictError, TransportError
from repairdesk.storage.abstract import RemoteStore
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class TableSpec:
    """Column layout and statements for one collection's table."""

    collection: Collection
    table: str
    key: str
    columns: Tuple[str, ...]
    order_by: str
    model: Type[BaseModel]
    ddl: str
    late_columns: Tuple[str, ...] = ()
    immutable: Tuple[str, ...] = ()

    @property
    def select_all(self) -> str:
        return f"SELECT {', '.join(self.columns)} FROM {self.table} ORDER BY {self.order_by}"

    @property
    def select_one(self) -> str:
        return f"SELECT {', '.join(self.columns)} FROM {self.table} WHERE {self.key} = %s"

    @property
    def insert(self) -> str:
        placeholders = ", ".join(f"%({c})s" for c in self.columns)
        return f"INSERT INTO {self.table} ({', '.join(self.columns)}) VALUES ({placeholders})"

    @property
    def upsert(self) -> str:
        updates = [
            f"{c} = EXCLUDED.{c}"
            for c in self.columns
            if c != self.key and c not in self.immutable
        ]
        action = f"DO UPDATE SET {', '.join(updates)}" if updates else "DO NOTHING"
        return f"{self.insert} ON CONFLICT ({self.key}) {action}"

    @property
    def delete(self) -> str:
        return f"DELETE FROM {self.table} WHERE {self.key} = %s"

    @property
    def add_columns(self) -> List[str]:
        return [f"ALTER TABLE {self.table} ADD COLUMN IF NOT EXISTS {c}" for c in self.late_columns]

    def to_row(self, entity: Entity) -> Dict[str, Any]:
        data = entity.model_dump()
        row: Dict[str, Any] = {}
        for column in self.columns:
            value = data[column]
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, dt.date) and not isinstance(value, dt.datetime):
                value = value.isoformat()
            row[column] = value
        return row

    def from_row(self, row: Dict[str, Any]) -> Entity:
        data = dict(row)
        if "id" in data and data["id"] is not None:
            # uuid columns come back as uuid.UUID
            data["id"] = str(data["id"])
        return self.model.model_validate(data)  # type: ignore[return-value]


TABLES: Dict[Collection, TableSpec] = {
    Collection.USERS: TableSpec(
        collection=Collection.USERS,
        table="users",
        key="username",
        columns=("id", "username", "password", "name", "role"),
        order_by="username",
        model=UserAccount,
        immutable=("id",),
        ddl="""
            CREATE TABLE IF NOT EXISTS users (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                username TEXT UNIQUE NOT NULL,
                password TEXT NOT NULL,
                name TEXT NOT NULL,
                role TEXT NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW()
            )
        """,
        late_columns=("created_at TIMESTAMPTZ DEFAULT NOW()",),
    ),
    Collection.REPAIRS: TableSpec(
        collection=Collection.REPAIRS,
        table="repairs",
        key="id",
        columns=(
            "id",
            "date",
            "work_week",
            "client_name",
            "contact_no",
            "unit",
            "declared_issue",
            "repair_cost",
            "technician_in_charge",
            "mode_of_transaction",
            "shipping_status",
            "repair_status",
            "repair_report",
            "updated_by_technician",
            "created_at",
            "updated_at",
        ),
        order_by="created_at, id",
        model=RepairRecord,
        immutable=("created_at",),
        ddl="""
            CREATE TABLE IF NOT EXISTS repairs (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                date TEXT NOT NULL,
                work_week TEXT NOT NULL,
                client_name TEXT NOT NULL,
                contact_no TEXT NOT NULL,
                unit TEXT NOT NULL,
                declared_issue TEXT NOT NULL,
                repair_cost NUMERIC NOT NULL,
                technician_in_charge TEXT NOT NULL,
                mode_of_transaction TEXT NOT NULL,
                shipping_status TEXT NOT NULL,
                repair_status TEXT NOT NULL,
                repair_report TEXT,
                updated_by_technician BOOLEAN DEFAULT FALSE,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
        """,
        late_columns=("repair_report TEXT", "updated_by_technician BOOLEAN DEFAULT FALSE"),
    ),
    Collection.TECHNICIANS: TableSpec(
        collection=Collection.TECHNICIANS,
        table="technicians",
        key="name",
        columns=("name",),
        order_by="name",
        model=Technician,
        ddl="""
            CREATE TABLE IF NOT EXISTS technicians (
                id SERIAL PRIMARY KEY,
                name TEXT UNIQUE NOT NULL
            )
        """,
    ),
}


class PostgresRemoteStore(RemoteStore):
    """
    Remote tier backed by PostgreSQL.

    The pool must already be open; see repairdesk.runtime.open_repository.
    """

    name: str = "remote"

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    @asynccontextmanager
    async def _cursor(self, action: str, collection: str) -> AsyncIterator[psycopg.AsyncCursor]:
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    yield cur
        except psycopg.errors.UniqueViolation as exc:
            raise ConflictError(f"{action} {collection}: duplicate key ({exc.diag.constraint_name})") from exc
        except (psycopg.Error, OSError) as exc:
            raise TransportError(f"{action} {collection} failed: {exc}") from exc

    async def read(self, collection: Collection) -> List[Entity]:
        spec = TABLES[collection]
        async with self._cursor("read", spec.table) as cur:
            await cur.execute(spec.select_all)
            rows = await cur.fetchall()
        entities: List[Entity] = []
        for row in rows:
            try:
                entities.append(spec.from_row(row))
            except PydanticValidationError:
                log.warning(
                    "Skipping unreadable remote row",
                    extra={"collection": spec.table, "key": str(row.get(spec.key))},
                )
        return entities

    async def get(self, collection: Collection, key: str) -> Optional[Entity]:
        spec = TABLES[collection]
        async with self._cursor("get", spec.table) as cur:
            await cur.execute(spec.select_one, (key,))
            row = await cur.fetchone()
        if row is None:
            return None
        try:
            return spec.from_row(row)
        except PydanticValidationError as exc:
            raise TransportError(f"Unreadable {spec.table} row '{key}': {exc}") from exc

    async def write(self, collection: Collection, entity: Entity, *, overwrite: bool = True) -> None:
        spec = TABLES[collection]
        statement = spec.upsert if overwrite else spec.insert
        async with self._cursor("write", spec.table) as cur:
            await cur.execute(statement, spec.to_row(entity))
        log.debug("Remote write", extra={"collection": spec.table, "key": entity.key})

    async def delete(self, collection: Collection, key: str) -> None:
        spec = TABLES[collection]
        async with self._cursor("delete", spec.table) as cur:
            await cur.execute(spec.delete, (key,))

    async def ensure_collections(self) -> None:
        for spec in TABLES.values():
            try:
                async with self._cursor("ensure", spec.table) as cur:
                    await cur.execute(spec.ddl)
                    for statement in spec.add_columns:
                        await cur.execute(statement)
            except ConflictError:
                # Another initializer created the table between our check and create.
                log.info("Table created concurrently", extra={"collection": spec.table})


__all__ = ["PostgresRemoteStore", "TABLES", "TableSpec"]
