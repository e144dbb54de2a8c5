from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer

from repairdesk.config import get_settings
from repairdesk.filters import ALL
from repairdesk.infrastructure.db_factory import close_async_pool
from repairdesk.reporter import export_csv, print_repairs, print_summary, summarize
from repairdesk.runtime import build_repository, connect_remote, open_repository
from repairdesk.storage.remote import PostgresRemoteStore
from repairdesk.utils.logging import configure_logging

app = typer.Typer(help="Repair shop record store CLI.")


def _setup_logging() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"cache={settings.local_cache_path} | strict_authorization={settings.strict_authorization}"
    )


@app.command("init-db")
def init_db() -> None:
    """
    Create tables, seed defaults into empty collections, and migrate the local cache.
    """
    _setup_logging()

    async def _run() -> None:
        settings = get_settings()
        pool = await connect_remote(settings)
        try:
            repository = build_repository(PostgresRemoteStore(pool), settings)
            await repository.bootstrap()
            report = repository.init_report
            if report is None:
                typer.echo("Remote store unavailable; nothing initialized.", err=True)
                raise typer.Exit(code=1)
            typer.echo(
                f"Schema ready. admin_seeded={report.seeded_admin} "
                f"technicians_seeded={report.seeded_technicians} "
                f"migrated={report.migration.total_inserted} failed={report.migration.total_failed}"
            )
        finally:
            await close_async_pool(pool)

    asyncio.run(_run())


@app.command("list")
def list_repairs(
    work_week: str = typer.Option(ALL, "--work-week", "-w", help='Work week, e.g. "Week 1", or All.'),
    technician: str = typer.Option(ALL, "--technician", "-t", help="Technician in charge, or All."),
    date: Optional[str] = typer.Option(None, "--date", "-d", help="Exact date (YYYY-MM-DD)."),
) -> None:
    """
    List repair records matching the filters.
    """
    _setup_logging()

    async def _run() -> None:
        async with open_repository() as repo:
            print_repairs(repo.filter(work_week=work_week, technician_in_charge=technician, date=date))

    asyncio.run(_run())


@app.command()
def summary(
    work_week: str = typer.Option(ALL, "--work-week", "-w"),
    technician: str = typer.Option(ALL, "--technician", "-t"),
    date: Optional[str] = typer.Option(None, "--date", "-d"),
) -> None:
    """
    Show totals, status counts and per-technician counts.
    """
    _setup_logging()

    async def _run() -> None:
        async with open_repository() as repo:
            records = repo.filter(work_week=work_week, technician_in_charge=technician, date=date)
            print_summary(summarize(records, repo.list_technicians()))

    asyncio.run(_run())


@app.command()
def export(
    output: Path = typer.Argument(Path("repairs_export.csv"), help="CSV file to write."),
) -> None:
    """
    Export all repair records to CSV.
    """
    _setup_logging()

    async def _run() -> int:
        async with open_repository() as repo:
            return export_csv(repo.list(), output)

    written = asyncio.run(_run())
    typer.echo(f"Exported {written} records to {output}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
