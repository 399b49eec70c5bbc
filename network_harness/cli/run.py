"""CLI command for a full provision/validate/destroy run."""

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from network_harness.config import HarnessConfig
from network_harness.harness import NetworkManagementHarness
from network_harness.logging import ConsoleLogger, FileLogger, LogLevel, MultiLogger
from network_harness.results import RunReport, StageStatus

console = Console()

STATUS_STYLES = {
    StageStatus.PASSED: "green",
    StageStatus.FAILED: "red",
    StageStatus.ERROR: "red",
    StageStatus.SKIPPED: "yellow",
}


def render_report(report: RunReport) -> None:
    """Print stage and check tables for a finished run."""
    stages = Table(title=f"Stages ({report.module})")
    stages.add_column("Stage", style="cyan")
    stages.add_column("Status")
    stages.add_column("Duration", justify="right")
    stages.add_column("Message")
    for stage in report.stages:
        style = STATUS_STYLES.get(stage.status, "white")
        stages.add_row(
            stage.stage,
            f"[{style}]{stage.status.value}[/{style}]",
            f"{stage.duration_seconds:.1f}s",
            stage.message,
        )
    console.print(stages)

    if report.checks:
        checks = Table(title="Checks")
        checks.add_column("Group", style="cyan")
        checks.add_column("Check")
        checks.add_column("Result")
        checks.add_column("Message")
        for check in report.checks:
            result = "[green]pass[/green]" if check.passed else "[red]FAIL[/red]"
            checks.add_row(check.group, check.name, result, check.message)
        console.print(checks)

    style = "green" if report.passed else "red"
    console.print(f"[bold {style}]{report.summary()}[/bold {style}]")


def run_command(
    examples_root: Optional[str] = typer.Option(
        None,
        "--examples-root", "-r",
        help="Repository root that contains the examples folder (default: current directory)"
    ),
    examples_folder: Optional[str] = typer.Option(
        None,
        "--examples-folder",
        help="Folder under the root holding the terraform examples"
    ),
    module_name: Optional[str] = typer.Option(
        None,
        "--module", "-m",
        help="Module under test inside the examples folder"
    ),
    project: Optional[str] = typer.Option(
        None,
        "--project", "-p",
        help="Google Cloud project id (defaults to GOOGLE_PROJECT and friends)"
    ),
    region: Optional[str] = typer.Option(
        None,
        "--region",
        help="Region to deploy into (defaults to a random UP region)"
    ),
    approved_regions: Optional[List[str]] = typer.Option(
        None,
        "--approved-region",
        help="Only pick from these regions (can be specified multiple times)"
    ),
    forbidden_regions: Optional[List[str]] = typer.Option(
        None,
        "--forbidden-region",
        help="Never pick these regions (can be specified multiple times)"
    ),
    multi_hop: Optional[bool] = typer.Option(
        None,
        "--multi-hop/--no-multi-hop",
        help="Also run the three-hop reachability checks"
    ),
    parallelism: Optional[int] = typer.Option(
        None,
        "--parallelism", "-j",
        help="Concurrent SSH checks (0 runs all at once)"
    ),
    keep: Optional[bool] = typer.Option(
        None,
        "--keep/--no-keep",
        help="Don't destroy infrastructure at the end"
    ),
    report_path: Optional[Path] = typer.Option(
        None,
        "--report",
        help="Write the run report as JSON to this file"
    ),
    log_file: Optional[str] = typer.Option(
        None,
        "--log-file",
        help="Also write events as JSON lines to this file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show debug logging"
    ),
):
    """
    Provision the network module, validate outputs and SSH reachability, then destroy it.

    Examples:

        # Run against the project in GOOGLE_CLOUD_PROJECT
        network-harness run --examples-root ..

        # Pin the region and keep the infrastructure for debugging
        network-harness run --region us-central1 --keep
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # paramiko logs every failed handshake, which expected-failure checks produce plenty of
    logging.getLogger("paramiko").setLevel(logging.DEBUG if verbose else logging.CRITICAL)

    try:
        config = HarnessConfig.from_env(
            examples_root=examples_root,
            examples_folder=examples_folder,
            module_name=module_name,
            project=project,
            region=region,
            approved_regions=approved_regions or None,
            forbidden_regions=forbidden_regions or None,
            multi_hop_checks=multi_hop,
            parallelism=parallelism,
            keep_infrastructure=keep,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise typer.Exit(code=2)

    events = ConsoleLogger(min_level=LogLevel.DEBUG if verbose else LogLevel.INFO)
    if log_file:
        events = MultiLogger(events, FileLogger(log_file, min_level=LogLevel.DEBUG))

    report = NetworkManagementHarness(config, event_logger=events).run()

    render_report(report)

    if report_path:
        report_path.write_text(json.dumps(report.to_dict(), indent=2))
        console.print(f"Report written to {report_path}")

    if not report.passed:
        raise typer.Exit(code=1)
