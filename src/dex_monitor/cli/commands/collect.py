"""Collect command: run one collection cycle now."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.table import Table

from dex_monitor.collection.config import CollectorConfig
from dex_monitor.collection.models import CompanyResult, summarize_results
from dex_monitor.collection.runner import build_cycle
from dex_monitor.storage.database import Database, resolve_db_path

console = Console()


def collect(
    db_path: str = typer.Option(
        "", help="DuckDB file path. Env: DEX_DB"
    ),
    source_dir: str = typer.Option(
        "", help="Root of per-company DEX exports. Env: DEX_SOURCE_DIR"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result envelope as JSON"),
) -> None:
    """Collect new DEX captures for every registered company."""
    config = CollectorConfig.from_env()
    config.db_path = resolve_db_path(db_path)
    if source_dir:
        config.source_dir = source_dir
    problems = config.validate()
    if problems:
        for p in problems:
            console.print(f"[red]Config error: {p}[/red]")
        raise typer.Exit(1)

    try:
        with Database(config.db_path) as db:
            results = build_cycle(db, config).run()
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(summarize_results(results), indent=2))
        return
    _show_results(results)


def _show_results(results: list[CompanyResult]) -> None:
    if not results:
        console.print("[yellow]No companies registered. Use 'register' first.[/yellow]")
        return

    table = Table(title="Collection Results")
    table.add_column("Company", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Records", justify="right")
    for r in results:
        if r.success:
            table.add_row(r.company_id, r.company_name, "[green]ok[/green]", str(r.records_collected))
        else:
            table.add_row(r.company_id, r.company_name, f"[red]{r.error}[/red]", "-")
    console.print(table)

    total = sum(r.records_collected for r in results)
    ok = sum(1 for r in results if r.success)
    console.print(f"\n[bold]{ok}/{len(results)}[/bold] companies collected, [bold]{total}[/bold] records")
