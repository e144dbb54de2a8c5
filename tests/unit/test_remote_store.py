from __future__ import annotations

import datetime as dt
import uuid
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import psycopg
import pytest
from psycopg.rows import dict_row

from repairdesk.domain.models import Collection, RepairRecord, Technician, UserAccount, UserRole
from repairdesk.errors import ConflictError, TransportError
from repairdesk.notifications import WarningSink
from repairdesk.storage.remote import TABLES, PostgresRemoteStore
from repairdesk.storage.tiered import TieredStore

CREATED = dt.datetime(2024, 5, 1, 8, 0, tzinfo=dt.timezone.utc)
REPAIR_ID = "0b6f6f52-4a43-4a8e-9d4f-5b0f5c2f8a11"


class _FakeCursor:
    def __init__(self, pool: "_FakePool") -> None:
        self._pool = pool
        self._result: List[Dict[str, Any]] = []

    async def execute(self, query: str, params: Any = None) -> None:
        self._pool.executed.append((query, params))
        if self._pool.error is not None:
            raise self._pool.error
        self._result = list(self._pool.rows)

    async def fetchall(self) -> List[Dict[str, Any]]:
        return self._result

    async def fetchone(self) -> Optional[Dict[str, Any]]:
        return self._result[0] if self._result else None


class _FakeConnection:
    def __init__(self, pool: "_FakePool") -> None:
        self._pool = pool

    @asynccontextmanager
    async def cursor(self, row_factory: Any = None):
        self._pool.row_factories.append(row_factory)
        yield _FakeCursor(self._pool)


class _FakePool:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None) -> None:
        self.rows = rows or []
        self.error = error
        self.connect_error: Optional[Exception] = None
        self.executed: List[Tuple[str, Any]] = []
        self.row_factories: List[Any] = []

    @asynccontextmanager
    async def connection(self):
        if self.connect_error is not None:
            raise self.connect_error
        yield _FakeConnection(self)


def _repair_row(**changes: Any) -> Dict[str, Any]:
    row = {
        "id": uuid.UUID(REPAIR_ID),
        "date": "2024-05-01",
        "work_week": "Week 1",
        "client_name": "Maria Santos",
        "contact_no": "09171234567",
        "unit": "iPhone 12",
        "declared_issue": "No power",
        "repair_cost": Decimal("1500.00"),
        "technician_in_charge": "John Doe",
        "mode_of_transaction": "Walk-in",
        "shipping_status": "Received",
        "repair_status": "Processing",
        "repair_report": None,
        "updated_by_technician": None,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    row.update(changes)
    return row


def test_upsert_never_rewrites_key_or_immutable_columns():
    upsert = TABLES[Collection.REPAIRS].upsert
    assert upsert.startswith("INSERT INTO repairs (")
    assert "ON CONFLICT (id) DO UPDATE SET" in upsert
    assert "id = EXCLUDED.id" not in upsert
    assert "created_at = EXCLUDED.created_at" not in upsert
    assert "updated_at = EXCLUDED.updated_at" in upsert


def test_technician_upsert_does_nothing_on_conflict():
    assert TABLES[Collection.TECHNICIANS].upsert.endswith("ON CONFLICT (name) DO NOTHING")


def test_late_columns_are_added_idempotently():
    statements = TABLES[Collection.REPAIRS].add_columns
    assert statements == [
        "ALTER TABLE repairs ADD COLUMN IF NOT EXISTS repair_report TEXT",
        "ALTER TABLE repairs ADD COLUMN IF NOT EXISTS updated_by_technician BOOLEAN DEFAULT FALSE",
    ]


def test_to_row_flattens_enums_and_dates(repair_fields):
    record = RepairRecord.model_validate(
        {**repair_fields, "id": REPAIR_ID, "createdAt": CREATED, "updatedAt": CREATED}
    )
    row = TABLES[Collection.REPAIRS].to_row(record)
    assert row["work_week"] == "Week 1"
    assert row["date"] == "2024-05-01"
    assert row["created_at"] == CREATED
    assert row["repair_cost"] == Decimal("1500.00")
    assert list(row) == list(TABLES[Collection.REPAIRS].columns)


@pytest.mark.asyncio
async def test_read_maps_rows_to_records():
    pool = _FakePool(rows=[_repair_row()])
    records = await PostgresRemoteStore(pool).read(Collection.REPAIRS)

    assert len(records) == 1
    record = records[0]
    assert record.id == REPAIR_ID
    assert record.repair_report == ""
    assert record.updated_by_technician is False
    assert pool.executed[0][0].startswith("SELECT id, date, work_week")
    assert pool.executed[0][0].endswith("ORDER BY created_at, id")
    assert pool.row_factories == [dict_row]


@pytest.mark.asyncio
async def test_read_skips_unreadable_rows():
    bad = _repair_row(id=uuid.uuid4(), repair_status="Done")
    records = await PostgresRemoteStore(_FakePool(rows=[bad, _repair_row()])).read(Collection.REPAIRS)

    assert [r.id for r in records] == [REPAIR_ID]


@pytest.mark.asyncio
async def test_load_stays_on_remote_when_a_row_is_unreadable(cache_tier):
    store = PostgresRemoteStore(_FakePool(rows=[_repair_row(repair_status="Done")]))
    sink = WarningSink()

    result = await TieredStore(store, cache_tier, sink).load(Collection.REPAIRS)

    assert result.source == "remote"
    assert result.entities == []
    assert sink.items == []


@pytest.mark.asyncio
async def test_get_unreadable_row_is_a_transport_error():
    store = PostgresRemoteStore(_FakePool(rows=[_repair_row(repair_status="Done")]))

    with pytest.raises(TransportError):
        await store.get(Collection.REPAIRS, REPAIR_ID)
    with pytest.raises(TransportError):
        await store.exists(Collection.REPAIRS, REPAIR_ID)


@pytest.mark.asyncio
async def test_get_returns_none_for_missing_key():
    pool = _FakePool(rows=[])
    store = PostgresRemoteStore(pool)

    assert await store.get(Collection.USERS, "nobody") is None
    assert await store.exists(Collection.USERS, "nobody") is False
    assert pool.executed[0][1] == ("nobody",)


@pytest.mark.asyncio
async def test_get_user_converts_uuid_id():
    user_id = uuid.uuid4()
    pool = _FakePool(
        rows=[{"id": user_id, "username": "admin", "password": "pw", "name": "Admin", "role": "admin"}]
    )
    account = await PostgresRemoteStore(pool).get(Collection.USERS, "admin")

    assert isinstance(account, UserAccount)
    assert account.id == str(user_id)
    assert account.role is UserRole.ADMIN


@pytest.mark.asyncio
async def test_write_uses_insert_without_overwrite():
    pool = _FakePool()
    store = PostgresRemoteStore(pool)

    await store.write(Collection.TECHNICIANS, Technician(name="John Doe"), overwrite=False)
    await store.write(Collection.TECHNICIANS, Technician(name="John Doe"))

    insert, upsert = (q for q, _ in pool.executed)
    assert "ON CONFLICT" not in insert
    assert "ON CONFLICT" in upsert
    assert pool.executed[0][1] == {"name": "John Doe"}


@pytest.mark.asyncio
async def test_delete_targets_key():
    pool = _FakePool()
    await PostgresRemoteStore(pool).delete(Collection.REPAIRS, REPAIR_ID)
    assert pool.executed == [("DELETE FROM repairs WHERE id = %s", (REPAIR_ID,))]


@pytest.mark.asyncio
async def test_unique_violation_becomes_conflict():
    pool = _FakePool(error=psycopg.errors.UniqueViolation("duplicate key"))
    with pytest.raises(ConflictError):
        await PostgresRemoteStore(pool).write(
            Collection.TECHNICIANS, Technician(name="John Doe"), overwrite=False
        )


@pytest.mark.asyncio
async def test_driver_errors_become_transport_errors():
    pool = _FakePool(error=psycopg.OperationalError("server closed the connection"))
    with pytest.raises(TransportError, match="read repairs"):
        await PostgresRemoteStore(pool).read(Collection.REPAIRS)


@pytest.mark.asyncio
async def test_connection_failure_becomes_transport_error():
    pool = _FakePool()
    pool.connect_error = OSError("connection refused")
    with pytest.raises(TransportError):
        await PostgresRemoteStore(pool).get(Collection.USERS, "admin")


@pytest.mark.asyncio
async def test_ensure_collections_runs_ddl_for_every_table():
    pool = _FakePool()
    await PostgresRemoteStore(pool).ensure_collections()

    queries = [q for q, _ in pool.executed]
    for spec in TABLES.values():
        assert any(f"CREATE TABLE IF NOT EXISTS {spec.table}" in q for q in queries)
    assert "ALTER TABLE repairs ADD COLUMN IF NOT EXISTS repair_report TEXT" in queries


@pytest.mark.asyncio
async def test_ensure_collections_tolerates_concurrent_create():
    pool = _FakePool(error=psycopg.errors.UniqueViolation("pg_type_typname_nsp_index"))
    await PostgresRemoteStore(pool).ensure_collections()
    assert len(pool.executed) == len(TABLES)
