"""Exception hierarchy for the network harness."""

from typing import Any, Dict, Optional


class HarnessError(Exception):
    """Base class for all harness errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TerraformError(HarnessError):
    """A terraform command failed or returned something unusable."""

    def __init__(
        self,
        message: str,
        command: Optional[list[str]] = None,
        returncode: Optional[int] = None,
        output: str = "",
    ):
        super().__init__(message, {"command": command, "returncode": returncode})
        self.command = command or []
        self.returncode = returncode
        self.output = output


class OutputNotFoundError(TerraformError):
    """A named output is missing from the terraform state."""

    def __init__(self, name: str, output: str = ""):
        super().__init__(f"output '{name}' not found", output=output)
        self.name = name


class MaxRetriesExceeded(HarnessError):
    """A retried action never succeeded within its budget."""

    def __init__(self, description: str, max_retries: int, last_error: Optional[BaseException]):
        super().__init__(
            f"'{description}' unsuccessful after {max_retries} retries: {last_error}",
            {"description": description, "max_retries": max_retries},
        )
        self.description = description
        self.max_retries = max_retries
        self.last_error = last_error


class FatalError(HarnessError):
    """Raised from inside a retried action to stop retrying immediately."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ProjectNotConfiguredError(HarnessError):
    """No Google Cloud project id could be found in the environment."""


class RegionSelectionError(HarnessError):
    """No region satisfies the approved/forbidden constraints."""


class InstanceNotFoundError(HarnessError):
    """A compute instance could not be found in the project."""

    def __init__(self, project: str, name: str):
        super().__init__(f"instance '{name}' not found in project '{project}'")
        self.project = project
        self.name = name


class NoPublicIpError(HarnessError):
    """An instance has no external (NAT) IP address."""

    def __init__(self, name: str):
        super().__init__(f"instance '{name}' has no public IP")
        self.name = name


class SSHCommandError(HarnessError):
    """Running a command over SSH failed."""

    def __init__(self, message: str, hostname: str = "", exit_status: Optional[int] = None, output: str = ""):
        super().__init__(message, {"hostname": hostname, "exit_status": exit_status})
        self.hostname = hostname
        self.exit_status = exit_status
        self.output = output
