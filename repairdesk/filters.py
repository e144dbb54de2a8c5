"""
Conjunctive filtering over a set of repair records.

Work week and technician accept the sentinel "All", which disables the
predicate instead of matching the literal string. Date matching is exact
equality on the ISO calendar date; there are no ranges.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from repairdesk.domain.models import RepairRecord

ALL = "All"

DateLike = Union[str, dt.date]


@dataclass(frozen=True)
class RepairFilter:
    work_week: Optional[str] = None
    technician_in_charge: Optional[str] = None
    date: Optional[DateLike] = None

    @classmethod
    def from_mapping(cls, criteria: Mapping[str, Any]) -> "RepairFilter":
        """Accept either the snake_case or the camelCase criteria keys."""
        return cls(
            work_week=criteria.get("work_week", criteria.get("workWeek")),
            technician_in_charge=criteria.get(
                "technician_in_charge", criteria.get("technicianInCharge")
            ),
            date=criteria.get("date"),
        )

    def predicates(self) -> List[Callable[[RepairRecord], bool]]:
        checks: List[Callable[[RepairRecord], bool]] = []
        if self.work_week and self.work_week != ALL:
            week = self.work_week
            checks.append(lambda r: r.work_week.value == week)
        if self.technician_in_charge and self.technician_in_charge != ALL:
            tech = self.technician_in_charge
            checks.append(lambda r: r.technician_in_charge == tech)
        if self.date:
            day = self.date.isoformat() if isinstance(self.date, dt.date) else self.date
            checks.append(lambda r: r.date.isoformat() == day)
        return checks


def filter_records(
    records: Sequence[RepairRecord],
    criteria: Union[RepairFilter, Mapping[str, Any], None] = None,
    **kwargs: Any,
) -> Sequence[RepairRecord]:
    """
    Return the records matching every supplied predicate.

    With no active predicate the input sequence itself is returned.

    Example
    -------
        filter_records(records, work_week="Week 2", technician_in_charge="All")
        filter_records(records, {"workWeek": "Week 2", "date": "2024-05-01"})
    """
    if criteria is None:
        criteria = RepairFilter.from_mapping(kwargs)
    elif not isinstance(criteria, RepairFilter):
        criteria = RepairFilter.from_mapping({**criteria, **kwargs})
    elif kwargs:
        # keyword criteria override the fields they name
        overrides = {k: v for k, v in asdict(RepairFilter.from_mapping(kwargs)).items() if v is not None}
        criteria = replace(criteria, **overrides)

    checks = criteria.predicates()
    if not checks:
        return records
    return [record for record in records if all(check(record) for check in checks)]


__all__ = ["ALL", "RepairFilter", "filter_records"]
