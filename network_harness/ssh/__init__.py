"""SSH helpers: key generation and remote command checks."""

from .keys import KeyPair, Host, generate_rsa_key_pair
from .client import (
    check_ssh_chain,
    check_ssh_command,
    check_private_ssh_connection,
)

__all__ = [
    "KeyPair",
    "Host",
    "generate_rsa_key_pair",
    "check_ssh_chain",
    "check_ssh_command",
    "check_private_ssh_connection",
]
