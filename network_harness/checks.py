"""SSH reachability rules for the network-management topology."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from network_harness.exceptions import MaxRetriesExceeded
from network_harness.results import CheckResult
from network_harness.retry import do_with_retry
from network_harness.ssh import Host, check_ssh_chain

logger = logging.getLogger(__name__)

SSH_GROUP = "ssh"

EXPECT_SUCCESS = True
EXPECT_FAILURE = False

SSH_MAX_RETRIES = 40
SSH_MAX_RETRIES_EXPECT_ERROR = 3
SSH_SLEEP_BETWEEN_RETRIES = 5.0
SSH_ECHO_TEXT = "Hello World"

# Host roles
EXTERNAL = "external"
PUBLIC = "public"
PUBLIC_NO_IP = "public-no-ip"
PRIVATE_PUBLIC = "private-public"
PRIVATE = "private"
PRIVATE_PERSISTENCE = "private-persistence"

ROLES = (EXTERNAL, PUBLIC, PUBLIC_NO_IP, PRIVATE_PUBLIC, PRIVATE, PRIVATE_PERSISTENCE)

CommandRunner = Callable[[Sequence[Host], str, float], str]


@dataclass(frozen=True)
class SSHCheck:
    """A named path through host roles and whether it must be reachable."""
    name: str
    expect_success: bool
    hops: Tuple[str, ...]


SSH_CHECKS: List[SSHCheck] = [
    # Success
    SSHCheck("public", EXPECT_SUCCESS, (PUBLIC,)),
    SSHCheck("public to external", EXPECT_SUCCESS, (PUBLIC, EXTERNAL)),
    SSHCheck("public to public-no-ip", EXPECT_SUCCESS, (PUBLIC, PUBLIC_NO_IP)),
    SSHCheck("public to private-public", EXPECT_SUCCESS, (PUBLIC, PRIVATE_PUBLIC)),
    SSHCheck("public to private", EXPECT_SUCCESS, (PUBLIC, PRIVATE)),

    # Failure
    SSHCheck("public-no-ip", EXPECT_FAILURE, (PUBLIC_NO_IP,)),
    SSHCheck("private-public", EXPECT_FAILURE, (PRIVATE_PUBLIC,)),
    SSHCheck("private", EXPECT_FAILURE, (PRIVATE,)),
    SSHCheck("public to private-persistence", EXPECT_FAILURE, (PUBLIC, PRIVATE_PERSISTENCE)),
]

MULTI_HOP_CHECKS: List[SSHCheck] = [
    SSHCheck("public to private-public to external", EXPECT_SUCCESS, (PUBLIC, PRIVATE_PUBLIC, EXTERNAL)),
    SSHCheck("public to private to private-persistence", EXPECT_SUCCESS, (PUBLIC, PRIVATE, PRIVATE_PERSISTENCE)),
    SSHCheck("public to private to external", EXPECT_FAILURE, (PUBLIC, PRIVATE, EXTERNAL)),
]


def ssh_checks(multi_hop: bool = False) -> List[SSHCheck]:
    """The reachability table, optionally with the three-hop paths."""
    if multi_hop:
        return SSH_CHECKS + MULTI_HOP_CHECKS
    return list(SSH_CHECKS)


@dataclass
class SSHSettings:
    """Retry budget and probe command for reachability checks."""
    max_retries: int = SSH_MAX_RETRIES
    max_retries_expect_error: int = SSH_MAX_RETRIES_EXPECT_ERROR
    sleep_between_retries: float = SSH_SLEEP_BETWEEN_RETRIES
    echo_text: str = SSH_ECHO_TEXT
    connect_timeout: float = 10.0

    @classmethod
    def from_config(cls, config) -> "SSHSettings":
        return cls(
            max_retries=config.ssh_max_retries,
            max_retries_expect_error=config.ssh_max_retries_expect_error,
            sleep_between_retries=config.ssh_sleep_seconds,
            echo_text=config.ssh_echo_text,
            connect_timeout=config.ssh_connect_timeout,
        )

    @property
    def command(self) -> str:
        return f"echo '{self.echo_text}'"


def check_ssh_on_hosts(
    expect_success: bool,
    hosts: Sequence[Host],
    settings: SSHSettings,
    runner: CommandRunner = check_ssh_chain,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[str]:
    """
    Echo a known string over the host chain, retrying until it comes back.

    Returns:
        None when the outcome matches expect_success, otherwise a failure message
    """
    max_retries = settings.max_retries if expect_success else settings.max_retries_expect_error

    def attempt() -> str:
        output = runner(hosts, settings.command, settings.connect_timeout)
        if settings.echo_text.strip() != output.strip():
            raise ValueError(f"Expected: {settings.echo_text}. Got: {output}")
        return output

    error: Optional[Exception] = None
    try:
        do_with_retry("Attempting to SSH", max_retries, settings.sleep_between_retries, attempt, sleep=sleep)
    except MaxRetriesExceeded as e:
        error = e

    if error is not None and expect_success:
        return f"Expected success but saw: {error}"
    if error is None and not expect_success:
        return "Expected an error but saw none."
    return None


def run_ssh_check(
    check: SSHCheck,
    hosts_by_role: Mapping[str, Host],
    settings: SSHSettings,
    runner: CommandRunner = check_ssh_chain,
    sleep: Callable[[float], None] = time.sleep,
) -> CheckResult:
    """Run one table row and turn its outcome into a CheckResult."""
    start = time.monotonic()

    missing = [role for role in check.hops if role not in hosts_by_role]
    if missing:
        return CheckResult(
            name=check.name,
            group=SSH_GROUP,
            passed=False,
            message=f"no host for role(s): {', '.join(missing)}",
        )

    hosts = [hosts_by_role[role] for role in check.hops]
    failure = check_ssh_on_hosts(check.expect_success, hosts, settings, runner=runner, sleep=sleep)

    expected = "reachable" if check.expect_success else "unreachable"
    return CheckResult(
        name=check.name,
        group=SSH_GROUP,
        passed=failure is None,
        message=failure or f"{expected} as expected",
        duration_seconds=time.monotonic() - start,
    )


def run_ssh_checks(
    checks: Sequence[SSHCheck],
    hosts_by_role: Mapping[str, Host],
    settings: SSHSettings,
    parallelism: int = 0,
    runner: CommandRunner = check_ssh_chain,
    sleep: Callable[[float], None] = time.sleep,
    on_result: Optional[Callable[[CheckResult], None]] = None,
) -> List[CheckResult]:
    """
    Run every check concurrently and wait for all of them.

    Args:
        parallelism: Worker count; 0 gives every check its own worker
        on_result: Called from the worker thread as each check finishes

    Returns:
        One CheckResult per check, in table order
    """
    if not checks:
        return []

    workers = parallelism or len(checks)

    def work(check: SSHCheck) -> CheckResult:
        result = run_ssh_check(check, hosts_by_role, settings, runner=runner, sleep=sleep)
        if on_result is not None:
            on_result(result)
        return result

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ssh-check") as executor:
        futures = [executor.submit(work, check) for check in checks]
        results = [future.result() for future in futures]

    failed = sum(1 for r in results if not r.passed)
    logger.info(f"SSH checks finished: {len(results) - failed}/{len(results)} passed")
    return results
