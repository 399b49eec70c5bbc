"""Provision, validate and tear down the network-management module."""

import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from network_harness.checks import (
    EXTERNAL,
    PRIVATE,
    PRIVATE_PERSISTENCE,
    PRIVATE_PUBLIC,
    PUBLIC,
    PUBLIC_NO_IP,
    SSHSettings,
    CommandRunner,
    run_ssh_checks,
    ssh_checks,
)
from network_harness.config import HarnessConfig
from network_harness.exceptions import HarnessError, NoPublicIpError
from network_harness.gcp import Instance, fetch_instance, get_project_id_from_env, get_random_region
from network_harness.logging import Logger, NullLogger
from network_harness.outputs import NETWORK_MANAGEMENT_OUTPUTS, check_outputs
from network_harness.results import CheckResult, RunReport, StageResult, StageStatus
from network_harness.retry import do_with_retry
from network_harness.runtime import (
    TerraformOptions,
    TerraformRuntime,
    copy_terraform_folder_to_temp,
    remove_workspace,
    save_workspace_state,
)
from network_harness.ssh import Host, KeyPair, check_ssh_chain, generate_rsa_key_pair

logger = logging.getLogger(__name__)

EXPOSURE_GROUP = "exposure"

# Terraform output holding each role's instance name
INSTANCE_OUTPUTS: Dict[str, str] = {
    EXTERNAL: "instance_default_network",
    PUBLIC: "instance_public_with_ip",
    PUBLIC_NO_IP: "instance_public_without_ip",
    PRIVATE_PUBLIC: "instance_private_public",
    PRIVATE: "instance_private",
    PRIVATE_PERSISTENCE: "instance_private_persistence",
}

# Reached from outside by public IP
DIRECT_ROLES = (EXTERNAL, PUBLIC)
# Must have no public IP; reached by instance name through a bastion
BASTION_ROLES = (PUBLIC_NO_IP, PRIVATE_PUBLIC, PRIVATE, PRIVATE_PERSISTENCE)

# Stages that only record checks; a failed check never blocks what follows
CHECK_STAGES = ("outputs", "exposure")


def terraform_options_for(config: HarnessConfig, module_dir: Path, project: str, region: str) -> TerraformOptions:
    """Variables and timeouts for the module under test."""
    return TerraformOptions(
        terraform_dir=str(module_dir),
        vars={"project": project, "region": region},
        init_timeout=config.init_timeout,
        apply_timeout=config.apply_timeout,
        destroy_timeout=config.destroy_timeout,
    )


class NetworkManagementHarness:
    """Runs the whole lifecycle for one module and collects a RunReport."""

    def __init__(
        self,
        config: HarnessConfig,
        event_logger: Optional[Logger] = None,
        terraform_factory: Callable[[TerraformOptions], TerraformRuntime] = TerraformRuntime,
        instance_fetcher: Callable[[str, str], Instance] = fetch_instance,
        project_resolver: Callable[[], str] = get_project_id_from_env,
        region_picker: Callable[..., str] = get_random_region,
        key_generator: Callable[[int], KeyPair] = generate_rsa_key_pair,
        ssh_runner: CommandRunner = check_ssh_chain,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.events = event_logger or NullLogger()
        self.terraform_factory = terraform_factory
        self.instance_fetcher = instance_fetcher
        self.project_resolver = project_resolver
        self.region_picker = region_picker
        self.key_generator = key_generator
        self.ssh_runner = ssh_runner
        self.sleep = sleep

        self.report = RunReport(module=config.module_name)
        self.runtime: Optional[TerraformRuntime] = None
        self.staged: Optional[Path] = None
        self.key_pair: Optional[KeyPair] = None
        self.instances: Dict[str, Instance] = {}
        self.hosts: Dict[str, Host] = {}

    def run(self) -> RunReport:
        """Stage, apply, validate, then always destroy."""
        self.events.info(
            "run.started",
            f"Module {self.config.module_name} from {self.config.examples_path}",
            {"module": self.config.module_name},
        )

        try:
            self._run_stages()
        except Exception as e:
            logger.exception("Harness run aborted")
            self.report.error = str(e)
        finally:
            self._teardown()

        self.events.info(
            "run.completed",
            self.report.summary(),
            {"passed": self.report.passed, "total": len(self.report.checks), "failed": len(self.report.failed_checks)},
        )
        return self.report

    def _run_stages(self) -> None:
        steps = [
            ("stage", self.stage_workspace),
            ("init_and_apply", self.init_and_apply),
            ("outputs", self.validate_outputs),
            ("attach_ssh_keys", self.attach_ssh_keys),
            ("exposure", self.check_exposure),
            ("ssh", self.check_reachability),
        ]

        for index, (name, step) in enumerate(steps):
            result = self._execute(name, step)
            self.report.stages.append(result)
            blocking = (StageStatus.ERROR,) if name in CHECK_STAGES else (StageStatus.FAILED, StageStatus.ERROR)
            if result.status in blocking:
                self._skip([n for n, _ in steps[index + 1:]])
                return

    def _execute(self, name: str, step: Callable[[], StageResult]) -> StageResult:
        start = time.monotonic()
        try:
            result = step()
        except HarnessError as e:
            self.events.error("stage.error", f"{name}: {e.message}")
            result = StageResult(stage=name, status=StageStatus.ERROR, message=e.message, details=e.details)
        except Exception as e:
            logger.exception(f"Unexpected error in stage {name}")
            self.events.error("stage.error", f"{name}: {e}")
            result = StageResult(stage=name, status=StageStatus.ERROR, message=f"Unexpected error: {e}")
        if not result.duration_seconds:
            result.duration_seconds = time.monotonic() - start
        return result

    def _skip(self, names: List[str]) -> None:
        for name in names:
            self.events.warning("stage.skipped", f"Skipping {name}")
            self.report.stages.append(
                StageResult(stage=name, status=StageStatus.SKIPPED, message="skipped after earlier failure")
            )

    def _checks_stage(self, name: str, checks: List[CheckResult]) -> StageResult:
        self.report.checks.extend(checks)
        failed = [c for c in checks if not c.passed]
        return StageResult(
            stage=name,
            status=StageStatus.FAILED if failed else StageStatus.PASSED,
            message=f"{len(checks) - len(failed)}/{len(checks)} checks passed",
            details={"failed": [c.name for c in failed]},
        )

    def stage_workspace(self) -> StageResult:
        """Copy the examples into a temp workspace and choose project and region."""
        config = self.config
        self.staged = copy_terraform_folder_to_temp(config.examples_root, config.examples_folder)
        module_dir = self.staged / config.module_name
        if not module_dir.is_dir():
            raise HarnessError(f"Module {config.module_name} not found in {self.staged}")

        project = config.project or self.project_resolver()
        region = config.region or self.region_picker(
            project,
            approved=config.approved_regions or None,
            forbidden=config.forbidden_regions or None,
        )
        self.report.project = project
        self.report.region = region
        self.report.workspace = str(module_dir)

        self.runtime = self.terraform_factory(terraform_options_for(config, module_dir, project, region))
        save_workspace_state(
            module_dir,
            {"module": config.module_name, "project": project, "region": region},
        )

        self.events.info(
            "terraform.stage",
            f"Staged {config.module_name} in {module_dir}",
            {"region": region},
        )
        return StageResult(
            stage="stage",
            status=StageStatus.PASSED,
            message=f"project={project} region={region}",
            details={"workspace": str(module_dir), "project": project, "region": region},
        )

    def init_and_apply(self) -> StageResult:
        self.events.info("terraform.init", "Running terraform init and apply...")
        result = self.runtime.init_and_apply()
        event = "terraform.init" if result.details.get("failed_step") == "init" else "terraform.apply"
        self.events.info(
            event,
            result.message,
            {"success": result.passed, "duration_seconds": result.duration_seconds},
        )
        if not result.passed:
            logger.error(f"terraform init/apply failed:\n{result.raw_output}")
        return result

    def validate_outputs(self) -> StageResult:
        checks = check_outputs(self.runtime, NETWORK_MANAGEMENT_OUTPUTS)
        for check in checks:
            if not check.passed:
                self.events.error("outputs.checked", check.message)
        self.events.info(
            "outputs.checked",
            "Checked terraform outputs",
            {"total": len(checks), "failed": sum(1 for c in checks if not c.passed)},
        )
        return self._checks_stage("outputs", checks)

    def attach_ssh_keys(self) -> StageResult:
        """Fetch every role's instance and attach one shared key pair to it."""
        config = self.config
        for role, output_name in INSTANCE_OUTPUTS.items():
            instance_name = self.runtime.output(output_name)
            self.instances[role] = self.instance_fetcher(self.report.project, instance_name)

        self.key_pair = self.key_generator(config.ssh_key_bits)

        for role, instance in self.instances.items():
            # fingerprint mismatches from concurrent metadata writes
            do_with_retry(
                "Adding SSH Key",
                config.key_attach_retries,
                config.key_attach_sleep_seconds,
                lambda instance=instance: instance.add_ssh_key(config.ssh_username, self.key_pair.public_key),
                sleep=self.sleep,
            )
            self.events.info("ssh.key_attached", f"Key attached to {instance.name} ({role})")

        return StageResult(
            stage="attach_ssh_keys",
            status=StageStatus.PASSED,
            message=f"Key for {config.ssh_username} attached to {len(self.instances)} instances",
        )

    def check_exposure(self) -> StageResult:
        """Build host descriptors; bastion-only hosts must have no public IP."""
        config = self.config
        checks: List[CheckResult] = []

        for role in DIRECT_ROLES:
            instance = self.instances[role]
            self.hosts[role] = Host(
                hostname=instance.get_public_ip(),
                ssh_key_pair=self.key_pair,
                ssh_user_name=config.ssh_username,
            )

        for role in BASTION_ROLES:
            instance = self.instances[role]
            try:
                ip = instance.get_public_ip()
            except NoPublicIpError:
                checks.append(CheckResult(
                    name=f"{role} has no public IP",
                    group=EXPOSURE_GROUP,
                    passed=True,
                    message=f"{instance.name} has no external IP",
                ))
            else:
                message = f"Found an external IP on {instance.name} when it should have had none"
                self.events.error("exposure.checked", message, {"ip": ip})
                checks.append(CheckResult(
                    name=f"{role} has no public IP",
                    group=EXPOSURE_GROUP,
                    passed=False,
                    message=message,
                ))

            self.hosts[role] = Host(
                hostname=instance.name,
                ssh_key_pair=self.key_pair,
                ssh_user_name=config.ssh_username,
            )

        self.events.info("exposure.checked", "Checked public IP exposure", {"total": len(checks)})
        return self._checks_stage("exposure", checks)

    def check_reachability(self) -> StageResult:
        settings = SSHSettings.from_config(self.config)

        def on_result(result: CheckResult) -> None:
            level = self.events.info if result.passed else self.events.error
            level(
                "ssh.check",
                f"{result.name}: {result.message}",
                {"passed": result.passed, "duration_seconds": result.duration_seconds},
            )

        checks = run_ssh_checks(
            ssh_checks(self.config.multi_hop_checks),
            self.hosts,
            settings,
            parallelism=self.config.parallelism,
            runner=self.ssh_runner,
            sleep=self.sleep,
            on_result=on_result,
        )
        return self._checks_stage("ssh", checks)

    def _teardown(self) -> None:
        if self.runtime is None:
            if self.staged is not None:
                remove_workspace(self.staged)
            return

        if self.config.keep_infrastructure:
            self.events.warning(
                "cleanup.skipped",
                f"Infrastructure kept; destroy it with: network-harness destroy {self.report.workspace}",
            )
            return

        self.events.info("terraform.destroy", "Running terraform destroy...")
        try:
            result = self.runtime.destroy()
        except Exception as e:
            logger.exception("terraform destroy raised")
            result = StageResult(stage="destroy", status=StageStatus.ERROR, message=str(e))
        self.report.stages.append(result)
        self.events.info(
            "terraform.destroy",
            result.message,
            {"success": result.passed, "duration_seconds": result.duration_seconds},
        )

        if result.passed:
            remove_workspace(self.staged)
            self.events.info("cleanup.completed", "Workspace removed")
        else:
            logger.error(f"terraform destroy failed:\n{result.raw_output}")
            self.events.error(
                "cleanup.skipped",
                f"Destroy failed; workspace left at {self.report.workspace} for manual cleanup",
            )
