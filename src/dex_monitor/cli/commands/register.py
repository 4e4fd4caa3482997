"""Register command: add a company and one of its machines."""

from __future__ import annotations

import typer
from rich.console import Console

from dex_monitor.storage.database import Database, resolve_db_path
from dex_monitor.storage.repositories import CompanyRepo, MachineRepo

console = Console()


def register(
    company_id: str = typer.Argument(help="Company identifier"),
    case_serial: str = typer.Argument(help="Machine case serial"),
    company_name: str = typer.Option("", help="Company display name"),
    source_path: str = typer.Option(
        "", help="DEX export directory for this company (overrides DEX_SOURCE_DIR/<company_id>)"
    ),
    db_path: str = typer.Option(
        "", help="DuckDB file path. Env: DEX_DB"
    ),
) -> None:
    """Register a machine so collection picks up its DEX captures."""
    try:
        effective_db = resolve_db_path(db_path)
        with Database(effective_db) as db:
            CompanyRepo(db).add(company_id, company_name, source_path)
            machine_id = MachineRepo(db).add(company_id, case_serial)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]Registered machine {case_serial}[/green] "
        f"(company {company_id}, machine_id {machine_id})"
    )
