from __future__ import annotations

import datetime as dt

import pytest

from repairdesk.domain.models import RepairRecord
from repairdesk.filters import ALL, RepairFilter, filter_records

CREATED = dt.datetime(2024, 5, 1, 8, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def records(repair_fields):
    def make(record_id, **changes):
        return RepairRecord.model_validate(
            {**repair_fields, **changes, "id": record_id, "createdAt": CREATED, "updatedAt": CREATED}
        )

    return [
        make("a", workWeek="Week 1", technicianInCharge="John Doe", date="2024-05-01"),
        make("b", workWeek="Week 2", technicianInCharge="John Doe", date="2024-05-09"),
        make("c", workWeek="Week 2", technicianInCharge="Jane Smith", date="2024-05-09"),
        make("d", workWeek="Week 3", technicianInCharge="Jane Smith", date="2024-05-16"),
    ]


def _ids(records):
    return [r.id for r in records]


def test_no_criteria_returns_input(records):
    assert filter_records(records) is records
    assert filter_records(records, work_week=ALL, technician_in_charge=ALL, date=None) is records


def test_all_sentinel_disables_predicate(records):
    assert _ids(filter_records(records, work_week=ALL, technician_in_charge="Jane Smith")) == ["c", "d"]


def test_filters_are_conjunctive(records):
    assert _ids(filter_records(records, work_week="Week 2", technician_in_charge="John Doe")) == ["b"]


def test_date_matches_exact_day(records):
    assert _ids(filter_records(records, date="2024-05-09")) == ["b", "c"]
    assert _ids(filter_records(records, date=dt.date(2024, 5, 16))) == ["d"]
    assert filter_records(records, date="2024-05-10") == []


def test_camel_case_mapping_criteria(records):
    criteria = {"workWeek": "Week 2", "technicianInCharge": "Jane Smith"}
    assert _ids(filter_records(records, criteria)) == ["c"]


def test_filter_object_criteria(records):
    assert _ids(filter_records(records, RepairFilter(work_week="Week 3"))) == ["d"]


def test_keywords_refine_filter_object(records):
    base = RepairFilter(work_week="Week 2")
    assert _ids(filter_records(records, base, technician_in_charge="Jane Smith")) == ["c"]
    assert _ids(filter_records(records, base, workWeek="Week 3")) == ["d"]
    assert base == RepairFilter(work_week="Week 2")


def test_filter_preserves_order_and_returns_subset(records):
    result = filter_records(records, technician_in_charge="John Doe")
    assert _ids(result) == ["a", "b"]
    assert all(r in records for r in result)


def test_unknown_values_match_nothing(records):
    assert filter_records(records, technician_in_charge="Nobody") == []
