"""Errors command: list and acknowledge a machine's tracked faults."""

from __future__ import annotations

from datetime import datetime, timezone

import typer
from rich.console import Console
from rich.table import Table

from dex_monitor.config.error_codes import describe_error
from dex_monitor.errors.reconciler import sort_for_display
from dex_monitor.storage.database import Database, resolve_db_path
from dex_monitor.storage.repositories import MachineRepo

console = Console()


def errors(
    case_serial: str = typer.Argument(help="Machine case serial"),
    action: str = typer.Argument("list", help="Action: list, action, clear"),
    code: str = typer.Option("", help="Error code (for action/clear)"),
    timestamp: str = typer.Option("", help="Error timestamp exactly as listed (for action/clear)"),
    db_path: str = typer.Option(
        "", help="DuckDB file path. Env: DEX_DB"
    ),
) -> None:
    """Show a machine's errors, or mark one as actioned/unactioned."""
    if action not in ("list", "action", "clear"):
        console.print(f"[red]Unknown action: {action}. Use list, action, or clear.[/red]")
        raise typer.Exit(1)

    try:
        effective_db = resolve_db_path(db_path)
        with Database(effective_db) as db:
            if action == "list":
                ok = _list_errors(db, case_serial)
            else:
                ok = _set_actioned(db, case_serial, code, timestamp, action == "action")
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not ok:
        raise typer.Exit(1)


def _list_errors(db: Database, case_serial: str) -> bool:
    repo = MachineRepo(db)
    machine = repo.find_by_serial(case_serial)
    if machine is None:
        console.print(f"[red]Machine {case_serial} not found.[/red]")
        return False

    error_list = sort_for_display(repo.get_errors_for_machine(machine.machine_id))
    if not error_list:
        console.print(f"[green]No errors tracked for {case_serial}.[/green]")
        return True

    table = Table(title=f"Errors for {case_serial} ({len(error_list)})")
    table.add_column("Type", style="cyan")
    table.add_column("Code", style="cyan")
    table.add_column("Description")
    table.add_column("Timestamp")
    table.add_column("Status")

    for e in error_list:
        if e.actioned:
            state = f"[green]actioned {(e.actioned_at or '')[:16]}[/green]"
        else:
            state = "[yellow]open[/yellow]"
        table.add_row(e.type, e.code, describe_error(e), e.timestamp, state)

    console.print(table)
    return True


def _set_actioned(
    db: Database, case_serial: str, code: str, timestamp: str, actioned: bool
) -> bool:
    if not code or not timestamp:
        console.print("[red]Provide --code and --timestamp to select an error.[/red]")
        return False

    repo = MachineRepo(db)
    machine = repo.find_by_serial(case_serial)
    if machine is None:
        console.print(f"[red]Machine {case_serial} not found.[/red]")
        return False

    now = datetime.now(timezone.utc)
    if not repo.set_error_actioned(machine.machine_id, code, timestamp, actioned, now):
        console.print(f"[red]No error {code} at {timestamp} on {case_serial}.[/red]")
        return False

    verb = "actioned" if actioned else "reopened"
    console.print(f"[green]Error {code} at {timestamp} marked as {verb}.[/green]")
    return True
