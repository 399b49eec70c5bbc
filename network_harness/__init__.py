"""Network Harness - provision a Terraform network module and validate its outputs and SSH reachability."""

__version__ = "0.1.0"

from . import runtime
from . import gcp
from . import ssh
from . import checks
from . import outputs
from . import harness

__all__ = [
    "runtime",
    "gcp",
    "ssh",
    "checks",
    "outputs",
    "harness",
]
