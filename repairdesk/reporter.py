"""
Reporting over repair records.

CSV export with a fixed header and column order, the dashboard summary
(counts per status and per technician) and rich console tables for the CLI.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, TextIO, Tuple, Union

from rich import box
from rich.console import Console
from rich.table import Table

from repairdesk.domain.models import RepairRecord, RepairStatus

# (record attribute, header label) in export order
EXPORT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("id", "ID"),
    ("date", "Date"),
    ("work_week", "Work Week"),
    ("client_name", "Client Name"),
    ("contact_no", "Contact No"),
    ("unit", "Unit"),
    ("declared_issue", "Declared Issue"),
    ("repair_cost", "Repair Cost"),
    ("technician_in_charge", "Technician"),
    ("mode_of_transaction", "Mode of Transaction"),
    ("shipping_status", "Shipping Status"),
    ("repair_status", "Repair Status"),
    ("repair_report", "Repair Report"),
)


def _cell(record: RepairRecord, attr: str) -> str:
    value = getattr(record, attr)
    if attr == "repair_cost":
        return f"{value:.2f}"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(getattr(value, "value", value))


def export_rows(records: Iterable[RepairRecord]) -> List[List[str]]:
    """Header row followed by one row per record."""
    rows = [[label for _, label in EXPORT_COLUMNS]]
    rows.extend([_cell(r, attr) for attr, _ in EXPORT_COLUMNS] for r in records)
    return rows


def export_csv(records: Iterable[RepairRecord], target: Union[Path, str, TextIO]) -> int:
    """
    Write records as CSV to a path or an open text stream.

    Returns the number of data rows written.
    """
    rows = export_rows(records)
    if isinstance(target, (str, Path)):
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as f:
            csv.writer(f, quoting=csv.QUOTE_ALL).writerows(rows)
    else:
        csv.writer(target, quoting=csv.QUOTE_ALL).writerows(rows)
    return len(rows) - 1


@dataclass
class RepairSummary:
    total_repairs: int = 0
    total_sales: Decimal = Decimal("0")
    by_status: Dict[str, int] = field(default_factory=dict)
    by_technician: Dict[str, int] = field(default_factory=dict)
    highlighted: int = 0


def summarize(records: Sequence[RepairRecord], technicians: Sequence[str]) -> RepairSummary:
    """
    Dashboard figures for a (possibly filtered) set of records.

    Every repair status appears, and every rostered technician in roster order,
    even with a zero count. Technicians no longer on the roster are appended.
    """
    summary = RepairSummary(
        total_repairs=len(records),
        by_status={status.value: 0 for status in RepairStatus},
        by_technician={name: 0 for name in technicians},
    )
    for record in records:
        summary.total_sales += record.repair_cost
        summary.by_status[record.repair_status.value] += 1
        tech = record.technician_in_charge
        summary.by_technician[tech] = summary.by_technician.get(tech, 0) + 1
        if record.updated_by_technician:
            summary.highlighted += 1
    return summary


def print_repairs(records: Sequence[RepairRecord], console: Optional[Console] = None) -> None:
    """
    Render repair records as a rich table.

    Rows touched by a technician since the last review are highlighted.
    """
    console = console or Console()

    if not records:
        console.print("[yellow]No repair records to display.[/yellow]")
        return

    table = Table(
        title="Repair Records",
        box=box.ROUNDED,
        caption="[bold yellow]Highlighted[/bold yellow] rows were updated by a technician",
    )
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Week", style="blue")
    table.add_column("Client")
    table.add_column("Unit")
    table.add_column("Technician", style="magenta")
    table.add_column("Status", style="green")
    table.add_column("Cost", justify="right", style="bold green")

    for r in records:
        table.add_row(
            r.date.isoformat(),
            r.work_week.value,
            r.client_name,
            r.unit,
            r.technician_in_charge,
            r.repair_status.value,
            f"{r.repair_cost:,.2f}",
            style="bold yellow" if r.updated_by_technician else None,
        )

    console.print(table)


def print_summary(summary: RepairSummary, console: Optional[Console] = None) -> None:
    console = console or Console()

    table = Table(title="Repair Summary", box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right", style="magenta")

    table.add_row("Total repairs", f"{summary.total_repairs:,}")
    table.add_row("Total sales", f"{summary.total_sales:,.2f}")
    table.add_row("Awaiting review", f"{summary.highlighted:,}")
    for status, count in summary.by_status.items():
        table.add_row(f"Status: {status}", f"{count:,}")
    for tech, count in summary.by_technician.items():
        table.add_row(f"Technician: {tech}", f"{count:,}")

    console.print(table)


__all__ = [
    "EXPORT_COLUMNS",
    "RepairSummary",
    "export_csv",
    "export_rows",
    "print_repairs",
    "print_summary",
    "summarize",
]
