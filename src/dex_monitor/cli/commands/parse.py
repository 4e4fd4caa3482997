"""Parse command: decode a raw DEX file without touching the database."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from dex_monitor.ingestion.formatter import parse_dex
from dex_monitor.ingestion.models import ParsedDex

console = Console()


def parse(
    path: str = typer.Argument(help="Path to a raw DEX file"),
    as_json: bool = typer.Option(False, "--json", help="Print the full parse result as JSON"),
) -> None:
    """Decode a raw DEX document and show its summary."""
    p = Path(path)
    if not p.is_file():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)

    try:
        with open(p, "r", encoding="utf-8", errors="replace", newline="") as f:
            parsed = parse_dex(f.read())
    except OSError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(parsed.to_dict(), indent=2))
        return
    _show_parsed(p.name, parsed)


def _show_parsed(name: str, parsed: ParsedDex) -> None:
    summary = parsed.summary

    table = Table(title=f"DEX Summary: {name}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total sales", f"${summary.total_sales:.2f}")
    table.add_row("Total vends", str(summary.total_vends))
    if summary.temperature is not None:
        unit = summary.temperature_unit or ""
        table.add_row("Temperature", f"{summary.temperature}{unit}")
    if summary.desired_temperature is not None:
        table.add_row("Desired temperature", str(summary.desired_temperature))
    errors_color = "red" if summary.has_errors else "green"
    table.add_row("Error codes", f"[{errors_color}]{summary.error_codes or 'none'}[/{errors_color}]")
    table.add_row("Has events", "yes" if summary.has_events else "no")
    console.print(table)

    groups = parsed.groups.to_dict()
    counts = Table(title="Key groups")
    counts.add_column("Group", style="cyan")
    counts.add_column("Keys", justify="right")
    for group_name, values in groups.items():
        counts.add_row(group_name, str(len(values)))
    counts.add_row("[dim]all[/dim]", str(len(parsed.key_values)))
    console.print(counts)
