"""List the assertions a run makes."""

import typer
from rich.console import Console
from rich.table import Table

from network_harness.checks import ssh_checks
from network_harness.harness import INSTANCE_OUTPUTS
from network_harness.outputs import NETWORK_MANAGEMENT_OUTPUTS

console = Console()


def checks_command(
    multi_hop: bool = typer.Option(
        False,
        "--multi-hop",
        help="Include the three-hop reachability checks"
    ),
):
    """Show expected outputs, instance roles and the SSH reachability table."""
    outputs = Table(title="Expected outputs")
    outputs.add_column("Output", style="cyan")
    outputs.add_column("Expected")
    for expectation in NETWORK_MANAGEMENT_OUTPUTS:
        outputs.add_row(expectation.output_key, expectation.expected_value)
    console.print(outputs)

    roles = Table(title="Instance roles")
    roles.add_column("Role", style="cyan")
    roles.add_column("Output")
    for role, output_name in INSTANCE_OUTPUTS.items():
        roles.add_row(role, output_name)
    console.print(roles)

    reachability = Table(title="SSH reachability")
    reachability.add_column("Check", style="cyan")
    reachability.add_column("Path")
    reachability.add_column("Expect")
    for check in ssh_checks(multi_hop):
        expect = "[green]success[/green]" if check.expect_success else "[red]failure[/red]"
        reachability.add_row(check.name, " -> ".join(check.hops), expect)
    console.print(reachability)
