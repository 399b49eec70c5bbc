"""Runtime execution module for Terraform operations."""

from .terraform import (
    CommandResult,
    TerraformOptions,
    TerraformRuntime,
    DEFAULT_RETRYABLE_ERRORS,
    format_var,
)
from .workspace import (
    copy_terraform_folder_to_temp,
    remove_workspace,
    save_workspace_state,
    load_workspace_state,
)

__all__ = [
    'CommandResult',
    'TerraformOptions',
    'TerraformRuntime',
    'DEFAULT_RETRYABLE_ERRORS',
    'format_var',
    'copy_terraform_folder_to_temp',
    'remove_workspace',
    'save_workspace_state',
    'load_workspace_state',
]
