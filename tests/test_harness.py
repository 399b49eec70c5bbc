"""End-to-end harness flow with every collaborator faked."""

import json
from pathlib import Path

import pytest

from network_harness.config import HarnessConfig
from network_harness.exceptions import SSHCommandError
from network_harness.harness import INSTANCE_OUTPUTS, NetworkManagementHarness
from network_harness.logging import FileLogger
from network_harness.results import StageStatus
from network_harness.runtime import remove_workspace

from conftest import NETWORK_OUTPUTS, FakeRuntime

REACHABLE = {
    ("203.0.113.20",),
    ("203.0.113.20", "203.0.113.10"),
    ("203.0.113.20", "net-public-no-ip"),
    ("203.0.113.20", "net-private-public"),
    ("203.0.113.20", "net-private"),
    ("203.0.113.20", "net-private-public", "203.0.113.10"),
    ("203.0.113.20", "net-private", "net-private-persistence"),
}


def topology_runner(reachable=REACHABLE):
    def runner(chain, command, timeout):
        if tuple(h.hostname for h in chain) in reachable:
            return "Hello World"
        raise SSHCommandError("connection refused", hostname=chain[-1].hostname)
    return runner


class Setup:
    """Builds a harness wired to fakes and remembers what it created."""

    def __init__(self, examples_root, fake_instances, key_pair, **config_overrides):
        self.runtimes = []
        self.instances = fake_instances
        self.runtime_kwargs = {}
        self.config = HarnessConfig(
            examples_root=str(examples_root),
            project="test-project",
            ssh_max_retries=2,
            ssh_max_retries_expect_error=1,
            ssh_sleep_seconds=0,
            key_attach_sleep_seconds=0,
            **config_overrides,
        )
        self.key_pair = key_pair
        self.runner = topology_runner()

    def terraform_factory(self, options):
        runtime = FakeRuntime(options, **self.runtime_kwargs)
        self.runtimes.append(runtime)
        return runtime

    def harness(self, events=None):
        return NetworkManagementHarness(
            self.config,
            event_logger=events,
            terraform_factory=self.terraform_factory,
            instance_fetcher=lambda project, name: self.instances[name],
            region_picker=lambda project, approved=None, forbidden=None: "us-east1",
            key_generator=lambda bits: self.key_pair,
            ssh_runner=self.runner,
            sleep=lambda s: None,
        )


@pytest.fixture
def setup(examples_root, fake_instances, key_pair):
    return Setup(examples_root, fake_instances, key_pair)


def stage_statuses(report):
    return {s.stage: s.status for s in report.stages}


def test_successful_run(setup):
    report = setup.harness().run()

    assert report.passed, report.to_dict()
    assert report.project == "test-project"
    assert report.region == "us-east1"
    assert list(stage_statuses(report)) == [
        "stage", "init_and_apply", "outputs", "attach_ssh_keys", "exposure", "ssh", "destroy",
    ]
    assert len(report.checks_in("outputs")) == 5
    assert len(report.checks_in("exposure")) == 4
    assert len(report.checks_in("ssh")) == 9

    runtime = setup.runtimes[0]
    assert runtime.options.vars == {"project": "test-project", "region": "us-east1"}
    assert Path(runtime.options.terraform_dir).name == "network-management"
    assert runtime.calls[0] == "init_and_apply"
    assert runtime.calls[-1] == "destroy"
    # workspace removed after a clean destroy
    assert not Path(runtime.options.terraform_dir).exists()


def test_key_attached_to_every_instance_with_retries(setup):
    setup.instances["net-private"].key_failures = 3

    report = setup.harness().run()

    assert report.passed
    for output_name in INSTANCE_OUTPUTS.values():
        assert setup.instances[NETWORK_OUTPUTS[output_name]].keys == ["terratest:ssh-rsa AAAAB3NzaC1yc2E test"]
    assert setup.instances["net-private"].attempts == 4


def test_key_attach_exhaustion_skips_ssh_but_destroys(setup):
    setup.instances["net-public"].key_failures = 100

    report = setup.harness().run()

    statuses = stage_statuses(report)
    assert statuses["attach_ssh_keys"] == StageStatus.ERROR
    assert statuses["exposure"] == StageStatus.SKIPPED
    assert statuses["ssh"] == StageStatus.SKIPPED
    assert statuses["destroy"] == StageStatus.PASSED
    assert not report.passed
    assert setup.instances["net-public"].attempts == setup.config.key_attach_retries


def test_apply_failure_skips_everything_and_destroys(setup):
    setup.runtime_kwargs = {"apply_ok": False}

    report = setup.harness().run()

    statuses = stage_statuses(report)
    assert statuses["init_and_apply"] == StageStatus.FAILED
    for name in ("outputs", "attach_ssh_keys", "exposure", "ssh"):
        assert statuses[name] == StageStatus.SKIPPED
    assert setup.runtimes[0].calls == ["init_and_apply", "destroy"]
    assert not report.passed


def test_output_mismatch_still_runs_ssh(setup):
    setup.runtime_kwargs = {"outputs": dict(NETWORK_OUTPUTS, public_subnetwork_gateway="10.0.1.1")}

    report = setup.harness().run()

    statuses = stage_statuses(report)
    assert statuses["outputs"] == StageStatus.FAILED
    assert statuses["ssh"] == StageStatus.PASSED
    assert [c.message for c in report.failed_checks] == ["expected a public gateway of 10.0.0.1 but saw 10.0.1.1"]


def test_unexpected_public_ip_is_reported(setup):
    setup.instances["net-private"].public_ip = "198.51.100.7"

    report = setup.harness().run()

    failed = report.failed_checks
    assert [c.group for c in failed] == ["exposure"]
    assert failed[0].message == "Found an external IP on net-private when it should have had none"
    # later stages still run
    assert stage_statuses(report)["ssh"] == StageStatus.PASSED


def test_bastion_without_public_ip_errors(setup):
    setup.instances["net-public"].public_ip = None

    report = setup.harness().run()

    statuses = stage_statuses(report)
    assert statuses["exposure"] == StageStatus.ERROR
    assert statuses["ssh"] == StageStatus.SKIPPED
    assert statuses["destroy"] == StageStatus.PASSED


def test_broken_isolation_fails_run(setup):
    setup.runner = topology_runner(REACHABLE | {("203.0.113.20", "net-private-persistence")})

    report = setup.harness().run()

    assert [c.name for c in report.failed_checks] == ["public to private-persistence"]
    assert not report.passed


def test_multi_hop_checks(examples_root, fake_instances, key_pair):
    setup = Setup(examples_root, fake_instances, key_pair, multi_hop_checks=True)

    report = setup.harness().run()

    assert report.passed
    assert len(report.checks_in("ssh")) == 12


def test_keep_infrastructure_skips_destroy(examples_root, fake_instances, key_pair):
    setup = Setup(examples_root, fake_instances, key_pair, keep_infrastructure=True)

    report = setup.harness().run()

    assert "destroy" not in setup.runtimes[0].calls
    assert report.stage("destroy") is None
    workspace = Path(report.workspace)
    assert (workspace / ".network-harness.json").exists()
    remove_workspace(workspace.parent)


def test_destroy_failure_keeps_workspace(setup):
    setup.runtime_kwargs = {"destroy_ok": False}

    report = setup.harness().run()

    assert report.stage("destroy").status == StageStatus.FAILED
    assert not report.passed
    assert Path(report.workspace).exists()
    remove_workspace(Path(report.workspace).parent)


def test_missing_module(examples_root, fake_instances, key_pair):
    setup = Setup(examples_root, fake_instances, key_pair, module_name="does-not-exist")

    report = setup.harness().run()

    assert stage_statuses(report)["stage"] == StageStatus.ERROR
    assert setup.runtimes == []
    assert not report.passed


def test_events_written_to_file(setup, tmp_path):
    log_path = tmp_path / "events.jsonl"

    setup.harness(events=FileLogger(str(log_path))).run()

    events = log_path.read_text().splitlines()
    assert '"event": "run.started"' in events[0]
    assert '"event": "run.completed"' in events[-1]
    assert sum('"event": "ssh.check"' in line for line in events) == 9


def test_init_failure_reported_as_init_event(setup, tmp_path):
    log_path = tmp_path / "events.jsonl"
    setup.runtime_kwargs = {"apply_ok": False, "failed_step": "init"}

    setup.harness(events=FileLogger(str(log_path))).run()

    events = [json.loads(line) for line in log_path.read_text().splitlines()]
    terraform = [(e["event"], e.get("data", {}).get("success")) for e in events if e["event"].startswith("terraform.")]
    assert terraform[1:3] == [("terraform.init", None), ("terraform.init", False)]
    assert "terraform.apply" not in [name for name, _ in terraform]
