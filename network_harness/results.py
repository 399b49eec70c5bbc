"""Result dataclasses for a harness run."""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from enum import Enum


class StageStatus(str, Enum):
    """Status of a harness stage."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class StageResult:
    """Result of a single lifecycle stage (apply, outputs, ssh, destroy, ...)."""
    stage: str
    status: StageStatus
    message: str = ""
    duration_seconds: float = 0.0
    raw_output: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.status == StageStatus.PASSED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        d = {
            "stage": self.stage,
            "status": self.status.value,
            "message": self.message,
            "duration_seconds": self.duration_seconds,
            "details": self.details,
        }
        if self.raw_output:
            d["output"] = self.raw_output
        return d


@dataclass
class CheckResult:
    """Outcome of one assertion: an output value, an exposure rule or an SSH path."""
    name: str
    group: str
    passed: bool
    message: str = ""
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "group": self.group,
            "passed": self.passed,
            "message": self.message,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class RunReport:
    """Aggregated result of one provision/validate/destroy cycle."""
    module: str
    project: Optional[str] = None
    region: Optional[str] = None
    workspace: Optional[str] = None
    stages: List[StageResult] = field(default_factory=list)
    checks: List[CheckResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        """True only if no stage failed and every check passed."""
        if self.error:
            return False
        if any(s.status in (StageStatus.FAILED, StageStatus.ERROR) for s in self.stages):
            return False
        return all(c.passed for c in self.checks)

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def stage(self, name: str) -> Optional[StageResult]:
        """Return the recorded stage with the given name, if any."""
        for s in self.stages:
            if s.stage == name:
                return s
        return None

    def checks_in(self, group: str) -> List[CheckResult]:
        return [c for c in self.checks if c.group == group]

    def summary(self) -> str:
        """One-line summary of the run."""
        total = len(self.checks)
        failed = len(self.failed_checks)
        status = "PASSED" if self.passed else "FAILED"
        return f"{status}: {total - failed}/{total} checks passed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "module": self.module,
            "project": self.project,
            "region": self.region,
            "workspace": self.workspace,
            "passed": self.passed,
            "summary": self.summary(),
            "error": self.error,
            "stages": [s.to_dict() for s in self.stages],
            "checks": [c.to_dict() for c in self.checks],
        }
