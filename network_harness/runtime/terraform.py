"""Terraform execution and management."""

import json
import logging
import os
import re
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from network_harness.exceptions import (
    FatalError,
    MaxRetriesExceeded,
    OutputNotFoundError,
    TerraformError,
)
from network_harness.results import StageResult, StageStatus
from network_harness.retry import do_with_retry

logger = logging.getLogger(__name__)

# Transient failures worth another attempt (provider downloads, plugin start-up)
DEFAULT_RETRYABLE_ERRORS: Dict[str, str] = {
    r"read: connection reset by peer": "Connection reset while contacting a remote service.",
    r"unable to verify signature": "Failed to retrieve plugin due to transient network error.",
    r"unable to verify checksum": "Failed to retrieve plugin due to transient network error.",
    r"registry service is unreachable": "Failed to retrieve plugin due to transient network error.",
    r"Error installing provider": "Failed to retrieve plugin due to transient network error.",
    r"Failed to query available provider packages": "Failed to retrieve plugin due to transient network error.",
    r"timeout while waiting for plugin to start": "Plugin did not start in time.",
    r"timed out waiting for server handshake": "Plugin did not start in time.",
    r"googleapi: Error 503": "Google API temporarily unavailable.",
}


@dataclass
class CommandResult:
    """Result of a subprocess command."""
    returncode: int
    stdout: str
    stderr: str
    duration_seconds: float

    @property
    def combined_output(self) -> str:
        if self.stdout and self.stderr:
            return self.stdout + "\n" + self.stderr
        return self.stdout or self.stderr


@dataclass
class TerraformOptions:
    """How to run terraform against one module directory."""
    terraform_dir: str
    vars: Dict[str, Any] = field(default_factory=dict)
    env_vars: Dict[str, str] = field(default_factory=dict)
    no_color: bool = True
    retryable_errors: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_RETRYABLE_ERRORS))
    max_retries: int = 3
    time_between_retries: float = 5.0
    init_timeout: int = 300
    apply_timeout: int = 1800
    destroy_timeout: int = 1800
    output_timeout: int = 60


def format_var(key: str, value: Any) -> str:
    """Render a single -var argument value."""
    if isinstance(value, bool):
        rendered = "true" if value else "false"
    elif isinstance(value, (list, tuple, dict)):
        rendered = json.dumps(value)
    else:
        rendered = str(value)
    return f"{key}={rendered}"


class TerraformRuntime:
    """Manages Terraform lifecycle operations for a staged module."""

    def __init__(self, options: TerraformOptions):
        """
        Initialize Terraform runtime.

        Args:
            options: Module directory, variables and retry policy
        """
        self.options = options
        self.working_dir = Path(options.terraform_dir)
        self._retryable = [(re.compile(pattern), reason) for pattern, reason in options.retryable_errors.items()]

    def _var_args(self) -> List[str]:
        args = []
        for key, value in self.options.vars.items():
            args.extend(["-var", format_var(key, value)])
        return args

    def _common_args(self) -> List[str]:
        args = ["-input=false"]
        if self.options.no_color:
            args.append("-no-color")
        return args

    def run_command(self, args: List[str], timeout: int = 300) -> CommandResult:
        """Run a command in the working directory."""
        env = os.environ.copy()
        env["TF_IN_AUTOMATION"] = "1"
        env.update(self.options.env_vars)

        logger.debug(f"Running {' '.join(args)} in {self.working_dir}")
        start = time.monotonic()
        try:
            result = subprocess.run(
                args,
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                env=env,
                timeout=timeout,
            )
            return CommandResult(
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
                duration_seconds=time.monotonic() - start,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                returncode=-1,
                stdout="",
                stderr=f"Command timed out after {timeout}s",
                duration_seconds=time.monotonic() - start,
            )
        except FileNotFoundError:
            return CommandResult(
                returncode=-1,
                stdout="",
                stderr=f"Command not found: {args[0]}",
                duration_seconds=time.monotonic() - start,
            )

    def _retryable_reason(self, output: str) -> Optional[str]:
        for pattern, reason in self._retryable:
            if pattern.search(output):
                return reason
        return None

    def _run_stage(self, stage: str, args: List[str], timeout: int) -> StageResult:
        """Run a terraform command, retrying known transient errors."""
        start = time.monotonic()
        last: Dict[str, CommandResult] = {}

        def attempt() -> CommandResult:
            result = self.run_command(args, timeout=timeout)
            last["result"] = result
            if result.returncode == 0:
                return result
            error = TerraformError(
                f"terraform {stage} failed",
                command=args,
                returncode=result.returncode,
                output=result.combined_output,
            )
            reason = self._retryable_reason(result.combined_output)
            if reason is None:
                raise FatalError(error.message, cause=error)
            logger.warning(f"terraform {stage} hit a retryable error: {reason}")
            raise error

        try:
            result = do_with_retry(
                f"terraform {stage}",
                self.options.max_retries,
                self.options.time_between_retries,
                attempt,
            )
        except (FatalError, MaxRetriesExceeded) as e:
            failed = last.get("result")
            return StageResult(
                stage=stage,
                status=StageStatus.FAILED,
                message=f"terraform {stage} failed",
                duration_seconds=time.monotonic() - start,
                raw_output=failed.combined_output if failed else str(e),
                details={"returncode": failed.returncode if failed else None},
            )

        return StageResult(
            stage=stage,
            status=StageStatus.PASSED,
            message=f"terraform {stage} succeeded",
            duration_seconds=time.monotonic() - start,
            raw_output=result.stdout,
        )

    def init(self) -> StageResult:
        """Run terraform init."""
        args = ["terraform", "init", "-upgrade=false"] + self._common_args()
        return self._run_stage("init", args, self.options.init_timeout)

    def apply(self) -> StageResult:
        """Run terraform apply -auto-approve with the configured variables."""
        args = ["terraform", "apply", "-auto-approve"] + self._common_args() + self._var_args()
        return self._run_stage("apply", args, self.options.apply_timeout)

    def init_and_apply(self) -> StageResult:
        """Run init then apply; the result carries both sub-results in details."""
        start = time.monotonic()
        init_result = self.init()
        if not init_result.passed:
            init_result.stage = "init_and_apply"
            init_result.details["failed_step"] = "init"
            return init_result

        apply_result = self.apply()
        apply_result.stage = "init_and_apply"
        apply_result.duration_seconds = time.monotonic() - start
        if not apply_result.passed:
            apply_result.details["failed_step"] = "apply"
        return apply_result

    def destroy(self) -> StageResult:
        """Run terraform destroy -auto-approve with the configured variables."""
        args = ["terraform", "destroy", "-auto-approve"] + self._common_args() + self._var_args()
        return self._run_stage("destroy", args, self.options.destroy_timeout)

    def output(self, name: str) -> str:
        """
        Read a single output as a string.

        String outputs are returned as-is; other values are re-serialised as JSON.

        Raises:
            OutputNotFoundError: The output does not exist or terraform failed
            TerraformError: The output was not valid JSON
        """
        args = ["terraform", "output", "-json"]
        if self.options.no_color:
            args.append("-no-color")
        args.append(name)

        result = self.run_command(args, timeout=self.options.output_timeout)
        if result.returncode != 0:
            raise OutputNotFoundError(name, output=result.combined_output)

        try:
            value = json.loads(result.stdout)
        except json.JSONDecodeError:
            raise TerraformError(
                f"could not parse output '{name}'",
                command=args,
                returncode=result.returncode,
                output=result.stdout,
            )

        if isinstance(value, str):
            return value
        return json.dumps(value)

    def output_all(self) -> Dict[str, Any]:
        """Read every output, keyed by name, with its decoded value."""
        args = ["terraform", "output", "-json"]
        result = self.run_command(args, timeout=self.options.output_timeout)
        if result.returncode != 0:
            raise TerraformError(
                "terraform output failed",
                command=args,
                returncode=result.returncode,
                output=result.combined_output,
            )

        try:
            raw = json.loads(result.stdout or "{}")
        except json.JSONDecodeError:
            raise TerraformError("could not parse terraform outputs", command=args, output=result.stdout)

        return {key: entry.get("value") for key, entry in raw.items()}
