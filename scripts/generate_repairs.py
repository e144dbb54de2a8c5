"""
Demo data generation for repairdesk.

Builds deterministic pseudo-random repair work orders and either writes them
to CSV or creates them through the repository, so every record goes through
the normal validation, dual-write and mirroring path.
"""

from __future__ import annotations

import asyncio
import csv
import random
import sys
import time
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Sequence

import typer

from repairdesk.config import get_settings
from repairdesk.domain.models import ModeOfTransaction, RepairStatus, ShippingStatus, WorkWeek
from repairdesk.runtime import open_repository
from repairdesk.utils.logging import configure_logging

app = typer.Typer(help="Generate demo repair records (CSV or straight into the store).")

UNITS = ["iPhone 12", "iPhone 13 Pro", "Galaxy S21", "Redmi Note 10", "iPad Air", "MacBook Air M1"]
ISSUES = ["No power", "Cracked screen", "Battery drain", "No signal", "Boot loop", "Water damage"]
FIRST_NAMES = ["Ana", "Ben", "Carla", "Dino", "Ella", "Franco", "Gina", "Hector"]
LAST_NAMES = ["Reyes", "Santos", "Cruz", "Garcia", "Mendoza", "Torres"]


def _generate_repair_fields(
    count: int,
    technicians: Sequence[str],
    seed: int,
    start: date | None = None,
) -> List[Dict[str, Any]]:
    """
    Build `count` camelCase field mappings accepted by RecordRepository.create.
    """
    if not technicians:
        raise ValueError("at least one technician is required")
    rng = random.Random(seed)
    start = start or date(2024, 1, 1)
    weeks = list(WorkWeek)

    rows: List[Dict[str, Any]] = []
    for _ in range(count):
        day = start + timedelta(days=rng.randint(0, 27))
        rows.append(
            {
                "date": day.isoformat(),
                "workWeek": weeks[min((day.day - 1) // 7, 3)].value,
                "clientName": f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
                "contactNo": f"09{rng.randint(100_000_000, 999_999_999)}",
                "unit": rng.choice(UNITS),
                "declaredIssue": rng.choice(ISSUES),
                "repairCost": f"{rng.randint(5, 120) * 100}.00",
                "technicianInCharge": rng.choice(list(technicians)),
                "modeOfTransaction": rng.choice(list(ModeOfTransaction)).value,
                "shippingStatus": rng.choice(list(ShippingStatus)).value,
                "repairStatus": rng.choice(list(RepairStatus)).value,
                "repairReport": "",
            }
        )
    return rows


async def _create_in_store(rows: List[Dict[str, Any]]) -> int:
    async with open_repository() as repo:
        missing = {r["technicianInCharge"] for r in rows} - set(repo.list_technicians())
        for name in sorted(missing):
            await repo.add_technician(name)
        for row in rows:
            await repo.create(row, acting_role="admin")
        if repo.warnings:
            typer.echo(f"{len(repo.warnings)} store warning(s); see log output.", err=True)
    return len(rows)


@app.command()
def main(
    count: int = typer.Option(50, "--count", "-n", help="Number of repair records to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write CSV here instead of creating records in the store.",
    ),
) -> None:
    """
    Generate demo repair records and create them in the store (or write CSV).
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    start = time.perf_counter()

    rows = _generate_repair_fields(count, settings.seed_technicians, seed)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=list(rows[0]) if rows else [])
            writer.writeheader()
            writer.writerows(rows)
        typer.echo(f"Wrote {len(rows):,} rows -> {output} in {time.perf_counter() - start:.2f}s")
        return

    created = asyncio.run(_create_in_store(rows))
    typer.echo(f"Created {created:,} repair records in {time.perf_counter() - start:.2f}s")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
