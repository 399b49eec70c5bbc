"""Expected values read back from the provisioned state."""

import time
from dataclasses import dataclass
from typing import List, Protocol, Sequence

from network_harness.exceptions import TerraformError
from network_harness.results import CheckResult

OUTPUTS_GROUP = "outputs"


class OutputReader(Protocol):
    def output(self, name: str) -> str: ...


@dataclass(frozen=True)
class OutputExpectation:
    """An output key, its expected literal value and a two-slot failure message."""
    output_key: str
    expected_value: str
    message: str

    def failure_message(self, actual: str) -> str:
        return self.message % (self.expected_value, actual)


# Checking the gateway addresses confirms the API allocated the expected
# blocks; the cidr outputs would only echo the configuration back.
NETWORK_MANAGEMENT_OUTPUTS: List[OutputExpectation] = [
    OutputExpectation("public_subnetwork_gateway", "10.0.0.1", "expected a public gateway of %s but saw %s"),
    OutputExpectation("private_subnetwork_gateway", "10.0.16.1", "expected a public gateway of %s but saw %s"),
    # network tags used as interpolation targets
    OutputExpectation("public", "public", "expected a tag of %s but saw %s"),
    OutputExpectation("private", "private", "expected a tag of %s but saw %s"),
    OutputExpectation("private_persistence", "private-persistence", "expected a tag of %s but saw %s"),
]


def check_output(reader: OutputReader, expectation: OutputExpectation) -> CheckResult:
    """Read one output and compare it with the expected value."""
    start = time.monotonic()
    try:
        value = reader.output(expectation.output_key)
    except TerraformError as e:
        return CheckResult(
            name=expectation.output_key,
            group=OUTPUTS_GROUP,
            passed=False,
            message=f"could not find {expectation.output_key} in outputs: {e}",
            duration_seconds=time.monotonic() - start,
        )

    if value != expectation.expected_value:
        return CheckResult(
            name=expectation.output_key,
            group=OUTPUTS_GROUP,
            passed=False,
            message=expectation.failure_message(value),
            duration_seconds=time.monotonic() - start,
        )

    return CheckResult(
        name=expectation.output_key,
        group=OUTPUTS_GROUP,
        passed=True,
        message=f"{expectation.output_key} = {value}",
        duration_seconds=time.monotonic() - start,
    )


def check_outputs(
    reader: OutputReader,
    expectations: Sequence[OutputExpectation] = NETWORK_MANAGEMENT_OUTPUTS,
) -> List[CheckResult]:
    """Evaluate every expectation; a failing row never stops the others."""
    return [check_output(reader, expectation) for expectation in expectations]
