"""Typer CLI application."""

import typer

from dex_monitor.cli.commands.parse import parse
from dex_monitor.cli.commands.collect import collect
from dex_monitor.cli.commands.status import status
from dex_monitor.cli.commands.errors import errors
from dex_monitor.cli.commands.register import register

app = typer.Typer(
    name="dex-monitor",
    help="Vending machine DEX telemetry monitor",
    no_args_is_help=True,
)

app.command()(parse)
app.command()(collect)
app.command()(status)
app.command()(errors)
app.command()(register)
