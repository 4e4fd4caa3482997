"""Status command: show machines and their latest DEX state."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from dex_monitor.storage.database import Database, resolve_db_path
from dex_monitor.storage.repositories import MachineRepo

console = Console()


def status(
    db_path: str = typer.Option(
        "", help="DuckDB file path. Env: DEX_DB"
    ),
    company: str = typer.Option("", help="Filter by company ID"),
) -> None:
    """Show each machine's latest capture, sales and open errors."""
    try:
        effective_db = resolve_db_path(db_path)
        with Database(effective_db) as db:
            _show_status(db, company)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("[dim]Run 'register' and 'collect' first to populate the database.[/dim]")
        raise typer.Exit(1)


def _show_status(db: Database, company: str = "") -> None:
    rows = MachineRepo(db).list_overview(company)
    if not rows:
        console.print("[yellow]No machines registered.[/yellow]")
        return

    table = Table(title=f"Machines ({len(rows)})")
    table.add_column("Company", style="cyan")
    table.add_column("Serial", style="cyan")
    table.add_column("Latest DEX")
    table.add_column("Last 4h", justify="right")
    table.add_column("Sales", justify="right")
    table.add_column("Vends", justify="right")
    table.add_column("Temp", justify="right")
    table.add_column("Open errors", justify="right")

    for r in rows:
        summary = r["summary"] or {}
        latest = r["latest_dex_data"]
        open_errors = sum(1 for e in r["errors"] if not e.actioned)
        color = "red" if open_errors else "green"
        temp = summary.get("temperature")
        table.add_row(
            r["company_name"],
            r["case_serial"],
            latest.strftime("%Y-%m-%d %H:%M") if latest else "[dim]never[/dim]",
            str(r["dex_last_4hrs"]),
            f"${summary['total_sales']}" if summary else "-",
            str(summary.get("total_vends", "-")),
            f"{temp}{summary.get('temperature_unit') or ''}" if temp is not None else "-",
            f"[{color}]{open_errors}[/{color}]",
        )

    console.print(table)
