"""Tests for the typer CLI."""

import json
from unittest.mock import patch

from typer.testing import CliRunner

from network_harness.cli import app
from network_harness.results import CheckResult, RunReport, StageResult, StageStatus
from network_harness.runtime import save_workspace_state

runner = CliRunner()


def test_checks_lists_tables():
    result = runner.invoke(app, ["checks", "--multi-hop"])

    assert result.exit_code == 0
    assert "public_subnetwork_gateway" in result.output
    assert "instance_private_persistence" in result.output
    assert "failure" in result.output


def fake_report(passed: bool) -> RunReport:
    report = RunReport(module="network-management", project="p", region="us-east1")
    report.stages.append(StageResult(stage="init_and_apply", status=StageStatus.PASSED))
    report.checks.append(CheckResult(name="public", group="ssh", passed=passed, message="m"))
    return report


def test_run_writes_report_and_sets_exit_code(tmp_path):
    report_path = tmp_path / "report.json"

    with patch("network_harness.cli.run.NetworkManagementHarness") as harness:
        harness.return_value.run.return_value = fake_report(passed=False)
        result = runner.invoke(app, ["run", "--project", "p", "--region", "us-east1", "--report", str(report_path)])

    assert result.exit_code == 1
    config = harness.call_args.args[0]
    assert config.project == "p"
    assert config.region == "us-east1"
    saved = json.loads(report_path.read_text())
    assert saved["passed"] is False
    assert saved["checks"][0]["name"] == "public"


def test_run_passes_flags_into_config():
    with patch("network_harness.cli.run.NetworkManagementHarness") as harness:
        harness.return_value.run.return_value = fake_report(passed=True)
        result = runner.invoke(app, ["run", "--multi-hop", "--keep", "-j", "4", "--forbidden-region", "us-east1"])

    assert result.exit_code == 0
    config = harness.call_args.args[0]
    assert config.multi_hop_checks is True
    assert config.keep_infrastructure is True
    assert config.parallelism == 4
    assert config.forbidden_regions == ["us-east1"]


def test_run_rejects_invalid_config():
    result = runner.invoke(app, ["run", "--parallelism=-1"])
    assert result.exit_code == 2


def test_destroy_without_state(tmp_path):
    result = runner.invoke(app, ["destroy", str(tmp_path)])
    assert result.exit_code == 2


def test_destroy_kept_workspace(tmp_path):
    save_workspace_state(tmp_path, {"module": "network-management", "project": "p", "region": "us-east1"})

    with patch("network_harness.cli.destroy.TerraformRuntime") as runtime_cls:
        runtime_cls.return_value.destroy.return_value = StageResult(
            stage="destroy", status=StageStatus.PASSED, message="terraform destroy succeeded"
        )
        result = runner.invoke(app, ["destroy", str(tmp_path), "--no-remove"])

    assert result.exit_code == 0
    options = runtime_cls.call_args.args[0]
    assert options.vars == {"project": "p", "region": "us-east1"}
    assert tmp_path.exists()
