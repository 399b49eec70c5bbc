"""Destroy infrastructure left behind by a run with --keep."""

from pathlib import Path

import typer
from rich.console import Console

from network_harness.config import HarnessConfig
from network_harness.harness import terraform_options_for
from network_harness.runtime import TerraformRuntime, load_workspace_state, remove_workspace

console = Console()


def destroy_command(
    workspace: Path = typer.Argument(..., help="Module directory printed by 'run --keep'"),
    remove: bool = typer.Option(
        True,
        "--remove/--no-remove",
        help="Delete the temporary workspace after a successful destroy"
    ),
):
    """Run terraform destroy in a kept workspace."""
    try:
        state = load_workspace_state(workspace)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)

    config = HarnessConfig.from_env()
    runtime = TerraformRuntime(terraform_options_for(config, workspace, state["project"], state["region"]))

    console.print(f"Destroying {state['module']} in {state['project']}/{state['region']}...")
    result = runtime.destroy()

    if not result.passed:
        console.print(f"[red]{result.message}[/red]")
        console.print(result.raw_output)
        raise typer.Exit(code=1)

    console.print(f"[green]{result.message}[/green] ({result.duration_seconds:.1f}s)")
    if remove:
        remove_workspace(workspace)
        console.print(f"Removed {workspace}")
