"""
RecordRepository: the public read/write API over repairs, technicians and users.

One repository is constructed per session with its remote and local tiers
injected. It owns the in-memory working set, which is the source of truth for
the session. Every write touches three surfaces:

1. the remote store (best-effort; failures become StoreWarnings),
2. the local cache mirror (always; failures are logged),
3. the working set (always).

Writes are serialized through one asyncio.Lock so they apply in the order the
caller issued them.

Usage:
    repo = RecordRepository(remote, LocalCacheTier(LocalCache(path)), initializer=init)
    await repo.bootstrap()
    record = await repo.create({"date": "2024-05-01", ...}, acting_role="csr")
    await repo.update(record.id, {"repairStatus": "Unit OK"}, "technician")
"""

from __future__ import annotations

import asyncio
import datetime as dt
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from repairdesk.domain.models import (
    Collection,
    RepairFields,
    RepairRecord,
    Technician,
    UserAccount,
    UserRole,
)
from repairdesk.domain.patches import RepairField, RepairPatch
from repairdesk.errors import ConflictError, RecordNotFoundError, TransportError, ValidationError
from repairdesk.filters import RepairFilter, filter_records
from repairdesk.notifications import StoreWarning, WarningCallback, WarningSink
from repairdesk.policy import AuthorizationPolicy
from repairdesk.schema import InitReport, SchemaInitializer
from repairdesk.storage.abstract import RemoteStore
from repairdesk.storage.local import LocalCacheTier
from repairdesk.storage.tiered import LoadResult, TieredStore
from repairdesk.utils.logging import get_logger

log = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _validated(model: Type[M], value: Any) -> M:
    """Coerce caller input into `model`, raising the store's ValidationError."""
    if isinstance(value, model):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(exclude_unset=True)
    try:
        return model.model_validate(value)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


def _role(value: Union[UserRole, str]) -> UserRole:
    try:
        return UserRole(value)
    except ValueError as exc:
        raise ValidationError(f"unknown role '{value}'") from exc


class RecordRepository:
    def __init__(
        self,
        primary: RemoteStore,
        fallback: LocalCacheTier,
        *,
        policy: Optional[AuthorizationPolicy] = None,
        initializer: Optional[SchemaInitializer] = None,
        clock: Callable[[], dt.datetime] = _utcnow,
        on_warning: Optional[WarningCallback] = None,
    ) -> None:
        self._sink = WarningSink(on_warning)
        self._tiers = TieredStore(primary, fallback, self._sink)
        self._policy = policy or AuthorizationPolicy()
        self._initializer = initializer
        self._clock = clock
        self._lock = asyncio.Lock()

        self._repairs: Dict[str, RepairRecord] = {}
        self._technicians: List[str] = []
        self._users: Dict[str, UserAccount] = {}

        self.sources: Dict[Collection, str] = {}
        self.init_report: Optional[InitReport] = None

    # ------------------------------------------------------------------ session

    @property
    def policy(self) -> AuthorizationPolicy:
        return self._policy

    @property
    def warnings(self) -> List[StoreWarning]:
        return list(self._sink.items)

    async def bootstrap(self) -> None:
        """
        Initialize the remote schema (once) and load all three collections.

        Each collection falls back to the local snapshot independently.
        """
        if self._initializer is not None:
            try:
                self.init_report = await self._initializer.run()
            except TransportError as exc:
                self._sink.emit(
                    StoreWarning(
                        operation="initialize",
                        collection="schema",
                        message=f"remote store unavailable, skipped schema setup and migration ({exc})",
                    )
                )

        for collection in Collection:
            self._install(await self._tiers.load(collection))

        log.info(
            "Repository ready",
            extra={
                "repairs": len(self._repairs),
                "technicians": len(self._technicians),
                "users": len(self._users),
                "sources": {c.value: s for c, s in self.sources.items()},
            },
        )

    def _install(self, result: LoadResult) -> None:
        self.sources[result.collection] = result.source
        if result.collection is Collection.REPAIRS:
            self._repairs = {r.key: r for r in result.entities}  # type: ignore[misc]
        elif result.collection is Collection.TECHNICIANS:
            self._technicians = [t.key for t in result.entities]
        else:
            self._users = {u.key: u for u in result.entities}  # type: ignore[misc]

    def _now(self) -> dt.datetime:
        return self._clock()

    # ------------------------------------------------------------------ repairs

    def list(self) -> List[RepairRecord]:
        return list(self._repairs.values())

    def get_by_id(self, record_id: str) -> Optional[RepairRecord]:
        return self._repairs.get(record_id)

    def filter(
        self,
        criteria: Union[RepairFilter, Mapping[str, Any], None] = None,
        **kwargs: Any,
    ) -> List[RepairRecord]:
        return list(filter_records(self.list(), criteria, **kwargs))

    def total_sales(self) -> Decimal:
        return sum((r.repair_cost for r in self._repairs.values()), Decimal("0"))

    def _require(self, record_id: str) -> RepairRecord:
        try:
            return self._repairs[record_id]
        except KeyError:
            raise RecordNotFoundError(f"repair '{record_id}' not found") from None

    def _check_technician(self, name: str) -> None:
        if name not in self._technicians:
            raise ValidationError(f"technician '{name}' does not exist")

    async def create(
        self,
        fields: Union[RepairFields, Mapping[str, Any]],
        acting_role: Union[UserRole, str, None] = None,
    ) -> RepairRecord:
        """
        Open a new work order.

        Raises
        ------
        AuthorizationError
            If `acting_role` is technician.
        ValidationError
            If `fields` is malformed or names an unknown technician.
        ConflictError
            If the remote store already holds the generated id.
        """
        self._policy.ensure_can_create(None if acting_role is None else _role(acting_role))
        body = _validated(RepairFields, fields)

        async with self._lock:
            self._check_technician(body.technician_in_charge)
            now = self._now()
            record = RepairRecord(
                id=str(uuid4()),
                created_at=now,
                updated_at=now,
                **body.model_dump(),
            )
            await self._tiers.write(Collection.REPAIRS, record, overwrite=False)
            self._repairs[record.id] = record

        log.info("Repair created", extra={"repair_id": record.id})
        return record

    async def update(
        self,
        record_id: str,
        patch: Union[RepairPatch, Mapping[str, Any]],
        acting_role: Union[UserRole, str],
    ) -> RepairRecord:
        """
        Apply the part of `patch` the acting role may write.

        Fields outside the role's writable set are dropped, or rejected with
        AuthorizationError when the policy is strict. A technician's write
        always raises the highlight flag; `updated_at` always advances.
        """
        role = _role(acting_role)
        applied, dropped = self._policy.restrict(_validated(RepairPatch, patch), role)

        async with self._lock:
            current = self._require(record_id)
            if (
                RepairField.TECHNICIAN_IN_CHARGE in applied.fields
                and applied.technician_in_charge != current.technician_in_charge
            ):
                self._check_technician(applied.technician_in_charge or "")

            overrides: Dict[str, Any] = {"updated_at": max(self._now(), current.updated_at)}
            if self._policy.marks_highlight(role):
                overrides["updated_by_technician"] = True
            try:
                updated = applied.apply_to(current, **overrides)
            except PydanticValidationError as exc:
                raise ValidationError(str(exc)) from exc

            await self._tiers.write(Collection.REPAIRS, updated)
            self._repairs[record_id] = updated

        log.info(
            "Repair updated",
            extra={
                "repair_id": record_id,
                "role": role.value,
                "fields": sorted(f.value for f in applied.fields),
                "dropped": sorted(f.value for f in dropped),
            },
        )
        return updated

    async def delete(self, record_id: str) -> None:
        async with self._lock:
            self._require(record_id)
            await self._tiers.delete(Collection.REPAIRS, record_id)
            del self._repairs[record_id]
        log.info("Repair deleted", extra={"repair_id": record_id})

    async def clear_highlight(self, record_id: str) -> RepairRecord:
        """
        Reset `updated_by_technician` once an admin or csr has reviewed the record.

        Does not advance `updated_at`.
        """
        async with self._lock:
            current = self._require(record_id)
            if not current.updated_by_technician:
                return current
            cleared = current.model_copy(update={"updated_by_technician": False})
            await self._tiers.write(Collection.REPAIRS, cleared)
            self._repairs[record_id] = cleared
        return cleared

    # -------------------------------------------------------------- technicians

    def list_technicians(self) -> List[str]:
        return list(self._technicians)

    async def add_technician(self, name: str) -> Technician:
        technician = _validated(Technician, {"name": name.strip()})
        async with self._lock:
            if technician.name in self._technicians:
                raise ConflictError(f"technician '{technician.name}' already exists")
            await self._tiers.write(Collection.TECHNICIANS, technician, overwrite=False)
            self._technicians.append(technician.name)
        log.info("Technician added", extra={"technician": technician.name})
        return technician

    async def remove_technician(self, name: str) -> None:
        """Remove a technician. Records naming them keep the name."""
        async with self._lock:
            if name not in self._technicians:
                raise RecordNotFoundError(f"technician '{name}' not found")
            await self._tiers.delete(Collection.TECHNICIANS, name)
            self._technicians.remove(name)
        log.info("Technician removed", extra={"technician": name})

    # -------------------------------------------------------------------- users

    def list_users(self) -> List[UserAccount]:
        return list(self._users.values())

    def get_user(self, username: str) -> Optional[UserAccount]:
        return self._users.get(username)

    async def add_user(
        self,
        username: str,
        name: str,
        role: Union[UserRole, str],
        password: str,
    ) -> UserAccount:
        account = _validated(
            UserAccount,
            {"username": username, "name": name, "role": role, "password": password},
        )
        async with self._lock:
            if account.username in self._users:
                raise ConflictError(f"user '{account.username}' already exists")
            await self._tiers.write(Collection.USERS, account, overwrite=False)
            self._users[account.username] = account
        log.info("User added", extra={"username": account.username, "role": account.role.value})
        return account

    async def remove_user(self, username: str) -> None:
        async with self._lock:
            if username not in self._users:
                raise RecordNotFoundError(f"user '{username}' not found")
            await self._tiers.delete(Collection.USERS, username)
            del self._users[username]
        log.info("User removed", extra={"username": username})


__all__ = ["RecordRepository"]
