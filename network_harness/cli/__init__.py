"""Command-line interface for network-harness."""

import typer

from network_harness.cli.run import run_command
from network_harness.cli.checks import checks_command
from network_harness.cli.destroy import destroy_command

app = typer.Typer(help="Network Harness - provision a network module and validate it end to end")

app.command(name="run")(run_command)
app.command(name="checks")(checks_command)
app.command(name="destroy")(destroy_command)


def main():
    """Main CLI entry point."""
    app()


__all__ = ["app", "main"]
