"""
Domain models for repairdesk.

Python attributes are snake_case. The camelCase aliases are the shape the
local cache and callers exchange (`workWeek`, `clientName`, ...); the remote
store uses the snake_case names as column names. Both spellings are accepted
on input.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Keys the store assigns; callers may echo them back but never set them.
SYSTEM_MANAGED_KEYS = frozenset({"id", "createdAt", "created_at", "updatedAt", "updated_at"})
HIGHLIGHT_KEYS = frozenset({"updatedByTechnician", "updated_by_technician"})


class WorkWeek(str, Enum):
    WEEK_1 = "Week 1"
    WEEK_2 = "Week 2"
    WEEK_3 = "Week 3"
    WEEK_4 = "Week 4"


class ModeOfTransaction(str, Enum):
    LALAMOVE = "Lalamove"
    COURIER = "Courier"
    WALK_IN = "Walk-in"


class ShippingStatus(str, Enum):
    RECEIVED = "Received"
    IN_TRANSIT = "In Transit"


class RepairStatus(str, Enum):
    PROCESSING = "Processing"
    MONITORING = "Monitoring"
    UNIT_OK = "Unit OK"
    RTO = "RTO"


class UserRole(str, Enum):
    ADMIN = "admin"
    CSR = "csr"
    TECHNICIAN = "technician"


class Collection(str, Enum):
    """The three entity collections mirrored by every storage tier."""

    REPAIRS = "repairs"
    TECHNICIANS = "technicians"
    USERS = "users"


class _RepairBody(BaseModel):
    """Fields a caller supplies when opening a work order."""

    date: dt.date = Field(..., description="Calendar date the unit came in.")
    work_week: WorkWeek
    client_name: str = Field(..., min_length=1)
    contact_no: str = Field(..., min_length=1)
    unit: str = Field(..., min_length=1)
    declared_issue: str = Field(..., min_length=1)
    repair_cost: Decimal = Field(..., ge=0)
    technician_in_charge: str = Field(..., min_length=1)
    mode_of_transaction: ModeOfTransaction
    shipping_status: ShippingStatus
    repair_status: RepairStatus
    repair_report: str = ""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    @field_validator("repair_report", mode="before")
    @classmethod
    def _null_report_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class RepairFields(_RepairBody):
    """
    Input for RecordRepository.create.

    Store-assigned keys and the highlight flag are discarded: a new record
    always starts un-highlighted with fresh id and timestamps.
    """

    @model_validator(mode="before")
    @classmethod
    def _drop_store_assigned(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: v
                for k, v in data.items()
                if k not in SYSTEM_MANAGED_KEYS and k not in HIGHLIGHT_KEYS
            }
        return data


class RepairRecord(_RepairBody):
    """
    A single repair work order as held in the working set.
    """

    id: str = Field(..., min_length=1, description="Immutable UUID string.")
    updated_by_technician: bool = False
    created_at: dt.datetime
    updated_at: dt.datetime

    @field_validator("updated_by_technician", mode="before")
    @classmethod
    def _null_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @model_validator(mode="after")
    def _timestamps_ordered(self) -> "RepairRecord":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        return self

    @property
    def key(self) -> str:
        return self.id

    def fields(self) -> RepairFields:
        """Project the caller-supplied part of the record."""
        return RepairFields.model_validate(self.model_dump(include=set(_RepairBody.model_fields)))

    def to_cache(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Technician(BaseModel):
    name: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> str:
        return self.name


class UserAccount(BaseModel):
    """
    A login account. The password is opaque and compared by equality.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    username: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role: UserRole
    password: str

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> str:
        return self.username

    def public(self) -> "SessionUser":
        return SessionUser(id=self.id, username=self.username, name=self.name, role=self.role)


class SessionUser(BaseModel):
    """The authenticated user as remembered under the cache `session` key."""

    id: str
    username: str
    name: str
    role: UserRole

    model_config = ConfigDict(frozen=True)


Entity = Union[RepairRecord, Technician, UserAccount]


__all__ = [
    "Collection",
    "Entity",
    "ModeOfTransaction",
    "RepairFields",
    "RepairRecord",
    "RepairStatus",
    "SessionUser",
    "ShippingStatus",
    "Technician",
    "UserAccount",
    "UserRole",
    "WorkWeek",
    "SYSTEM_MANAGED_KEYS",
]
