"""Staging of terraform folders into isolated temporary workspaces."""

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Set

logger = logging.getLogger(__name__)

STATE_FILE = ".network-harness.json"

# Hidden files that pin versions and must travel with the module
KEPT_HIDDEN_FILES = (".terraform.lock.hcl", ".terraform-version")

# Left behind by local runs; copying them would leak state into the test
IGNORED_PATTERNS = (
    "terraform.tfstate",
    "terraform.tfstate.backup",
    "*.tfvars",
)


def _ignore(directory: str, names: List[str]) -> Set[str]:
    """Skip every dot-path except the lock and version files, plus local state."""
    ignored = set(shutil.ignore_patterns(*IGNORED_PATTERNS)(directory, names))
    ignored.update(n for n in names if n.startswith(".") and n not in KEPT_HIDDEN_FILES)
    return ignored


def copy_terraform_folder_to_temp(root: str, folder: str, prefix: str = "network-harness-") -> Path:
    """
    Copy the whole root tree into a fresh temporary directory.

    The entire root is copied, not just the folder, so relative module
    sources such as ../../modules/vpc-network keep resolving inside the copy.

    Args:
        root: Repository root to copy
        folder: Folder inside root holding the modules (for example "examples")
        prefix: Temp dir name prefix

    Returns:
        Path of folder inside the staged copy
    """
    source_root = Path(root).resolve()
    if not (source_root / folder).is_dir():
        raise FileNotFoundError(f"Terraform folder not found: {source_root / folder}")

    temp_root = Path(tempfile.mkdtemp(prefix=prefix))
    staged_root = temp_root / source_root.name
    shutil.copytree(source_root, staged_root, ignore=_ignore)

    staged = staged_root / folder
    logger.info(f"Staged {source_root} into {staged_root}")
    return staged


def remove_workspace(staged: Path) -> None:
    """Delete the temporary directory a staged folder lives in."""
    staged = Path(staged).resolve()
    for parent in staged.parents:
        if parent.parent == Path(tempfile.gettempdir()).resolve():
            shutil.rmtree(parent, ignore_errors=True)
            return
    logger.warning(f"Refusing to remove {staged}: not inside the temp directory")


def save_workspace_state(module_dir: Path, state: Dict[str, Any]) -> Path:
    """Record what was applied so a kept workspace can be destroyed later."""
    path = Path(module_dir) / STATE_FILE
    path.write_text(json.dumps(state, indent=2))
    return path


def load_workspace_state(module_dir: Path) -> Dict[str, Any]:
    path = Path(module_dir) / STATE_FILE
    if not path.exists():
        raise FileNotFoundError(f"No harness state in {module_dir}")
    return json.loads(path.read_text())
