"""
Partial updates for repair records.

A RepairPatch names the fields it carries explicitly (pydantic's
`model_fields_set`), drawn from the closed RepairField set. Authorization
narrows a patch by intersecting that set with the acting role's writable
fields; no string-keyed probing of caller dictionaries happens downstream.
"""
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import AbstractSet, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from repairdesk.domain.models import (
    SYSTEM_MANAGED_KEYS,
    ModeOfTransaction,
    RepairRecord,
    RepairStatus,
    ShippingStatus,
    WorkWeek,
)


class RepairField(str, Enum):
    """Every repair attribute a caller can ever write."""

    DATE = "date"
    WORK_WEEK = "work_week"
    CLIENT_NAME = "client_name"
    CONTACT_NO = "contact_no"
    UNIT = "unit"
    DECLARED_ISSUE = "declared_issue"
    REPAIR_COST = "repair_cost"
    TECHNICIAN_IN_CHARGE = "technician_in_charge"
    MODE_OF_TRANSACTION = "mode_of_transaction"
    SHIPPING_STATUS = "shipping_status"
    REPAIR_STATUS = "repair_status"
    REPAIR_REPORT = "repair_report"
    UPDATED_BY_TECHNICIAN = "updated_by_technician"


class RepairPatch(BaseModel):
    date: Optional[dt.date] = None
    work_week: Optional[WorkWeek] = None
    client_name: Optional[str] = Field(None, min_length=1)
    contact_no: Optional[str] = Field(None, min_length=1)
    unit: Optional[str] = Field(None, min_length=1)
    declared_issue: Optional[str] = Field(None, min_length=1)
    repair_cost: Optional[Decimal] = Field(None, ge=0)
    technician_in_charge: Optional[str] = Field(None, min_length=1)
    mode_of_transaction: Optional[ModeOfTransaction] = None
    shipping_status: Optional[ShippingStatus] = None
    repair_status: Optional[RepairStatus] = None
    repair_report: Optional[str] = None
    updated_by_technician: Optional[bool] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_store_assigned(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if k not in SYSTEM_MANAGED_KEYS}
        return data

    @model_validator(mode="after")
    def _no_explicit_nulls(self) -> "RepairPatch":
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"fields cannot be cleared with null: {', '.join(nulls)}")
        return self

    @property
    def fields(self) -> frozenset[RepairField]:
        return frozenset(RepairField(name) for name in self.model_fields_set)

    def changes(self) -> Dict[str, Any]:
        return {field.value: getattr(self, field.value) for field in self.fields}

    def only(self, allowed: AbstractSet[RepairField]) -> "RepairPatch":
        """Return a patch carrying just the fields in `allowed`."""
        return RepairPatch.model_validate(
            {field.value: getattr(self, field.value) for field in self.fields & allowed}
        )

    def apply_to(self, record: RepairRecord, **overrides: Any) -> RepairRecord:
        merged = record.model_dump()
        merged.update(self.changes())
        merged.update(overrides)
        return RepairRecord.model_validate(merged)

    def __bool__(self) -> bool:
        return bool(self.model_fields_set)


__all__ = ["RepairField", "RepairPatch"]
