"""Harness configuration."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "NETWORK_HARNESS_"


class HarnessConfig(BaseModel):
    """Settings for one provision/validate/destroy cycle."""

    # Workspace
    examples_root: str = Field(".", description="Directory that contains the examples folder")
    examples_folder: str = Field("examples", description="Folder copied into the temporary workspace")
    module_name: str = Field("network-management", description="Terraform module under test, inside examples_folder")

    # Cloud placement
    project: Optional[str] = Field(None, description="Google Cloud project id (defaults to environment)")
    region: Optional[str] = Field(None, description="Region to deploy into (defaults to a random UP region)")
    approved_regions: List[str] = Field(default_factory=list, description="Only pick from these regions")
    forbidden_regions: List[str] = Field(default_factory=list, description="Never pick these regions")

    # SSH key material
    ssh_username: str = Field("terratest", description="User the generated key is attached for")
    ssh_key_bits: int = Field(2048, description="RSA key size")
    key_attach_retries: int = Field(20, description="Attempts to attach the key to each instance")
    key_attach_sleep_seconds: float = Field(1.0, description="Pause between key attach attempts")

    # SSH reachability
    ssh_max_retries: int = Field(40, description="Attempts per check that expects success")
    ssh_max_retries_expect_error: int = Field(3, description="Attempts per check that expects failure")
    ssh_sleep_seconds: float = Field(5.0, description="Pause between SSH attempts")
    ssh_echo_text: str = Field("Hello World", description="Text echoed on the remote host")
    ssh_connect_timeout: float = Field(10.0, description="TCP/SSH handshake timeout per hop")
    parallelism: int = Field(0, description="SSH check workers (0 runs every check at once)")
    multi_hop_checks: bool = Field(False, description="Also run three-hop reachability checks")

    # Lifecycle
    keep_infrastructure: bool = Field(False, description="Skip terraform destroy at the end")
    init_timeout: int = Field(300, description="terraform init timeout in seconds")
    apply_timeout: int = Field(1800, description="terraform apply timeout in seconds")
    destroy_timeout: int = Field(1800, description="terraform destroy timeout in seconds")

    @field_validator("ssh_key_bits")
    @classmethod
    def _key_bits_large_enough(cls, v: int) -> int:
        if v < 1024:
            raise ValueError("ssh_key_bits must be at least 1024")
        return v

    @field_validator(
        "key_attach_retries", "ssh_max_retries", "ssh_max_retries_expect_error"
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry counts must be at least 1")
        return v

    @field_validator("parallelism")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("parallelism cannot be negative")
        return v

    @property
    def examples_path(self) -> Path:
        return Path(self.examples_root) / self.examples_folder

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, **overrides: Any) -> "HarnessConfig":
        """
        Build a config from NETWORK_HARNESS_* environment variables.

        Explicit keyword overrides win over the environment; None overrides are ignored.
        List fields are comma separated.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for name, field in cls.model_fields.items():
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if field.annotation == List[str]:
                values[name] = [item.strip() for item in raw.split(",") if item.strip()]
            else:
                values[name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
