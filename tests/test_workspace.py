"""Tests for staging terraform folders into temp workspaces."""

import pytest

from network_harness.runtime import (
    copy_terraform_folder_to_temp,
    load_workspace_state,
    remove_workspace,
    save_workspace_state,
)


def test_copies_whole_root_and_returns_folder(examples_root):
    staged = copy_terraform_folder_to_temp(str(examples_root), "examples")
    try:
        assert staged.name == "examples"
        module = staged / "network-management"
        assert (module / "main.tf").exists()
        # sibling modules referenced with ../../modules stay reachable
        assert (module / ".." / ".." / "modules" / "vpc-network" / "main.tf").resolve().exists()
        # local run leftovers are not copied
        assert not (module / "terraform.tfstate").exists()
        assert not (module / ".terraform").exists()
        assert staged.resolve() != (examples_root / "examples").resolve()
    finally:
        remove_workspace(staged)

    assert not staged.exists()


def test_missing_folder_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        copy_terraform_folder_to_temp(str(tmp_path), "examples")


def test_workspace_state_round_trip(tmp_path):
    save_workspace_state(tmp_path, {"module": "network-management", "project": "p", "region": "r"})
    assert load_workspace_state(tmp_path)["region"] == "r"


def test_load_state_without_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_workspace_state(tmp_path)


def test_keeps_version_pins_and_skips_hidden_paths(examples_root):
    module = examples_root / "examples" / "network-management"
    (module / ".terraform.lock.hcl").write_text('provider "registry.terraform.io/hashicorp/google" {}\n')
    (module / ".terraform-version").write_text("1.5.7\n")
    (module / "dev.tfvars").write_text('region = "us-west1"\n')
    (examples_root / ".venv" / "lib").mkdir(parents=True)
    (examples_root / ".venv" / "lib" / "big.so").write_text("binary")
    (examples_root / ".github").mkdir()

    staged = copy_terraform_folder_to_temp(str(examples_root), "examples")
    try:
        staged_module = staged / "network-management"
        assert (staged_module / ".terraform.lock.hcl").exists()
        assert (staged_module / ".terraform-version").read_text() == "1.5.7\n"
        assert not (staged_module / "dev.tfvars").exists()
        assert not (staged.parent / ".venv").exists()
        assert not (staged.parent / ".github").exists()
    finally:
        remove_workspace(staged)
