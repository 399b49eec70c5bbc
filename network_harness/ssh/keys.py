"""SSH key material and host descriptors."""

import io
from dataclasses import dataclass, field

import paramiko


@dataclass(frozen=True)
class KeyPair:
    """An RSA key pair: OpenSSH public key line and PEM private key."""
    public_key: str
    private_key: str = field(repr=False)

    def pkey(self) -> paramiko.PKey:
        """Load the private key for paramiko authentication."""
        return paramiko.RSAKey.from_private_key(io.StringIO(self.private_key))


def generate_rsa_key_pair(bits: int = 2048) -> KeyPair:
    """Generate a fresh RSA key pair."""
    key = paramiko.RSAKey.generate(bits)

    private = io.StringIO()
    key.write_private_key(private)

    return KeyPair(
        public_key=f"{key.get_name()} {key.get_base64()}",
        private_key=private.getvalue(),
    )


@dataclass(frozen=True)
class Host:
    """Where and as whom to connect.

    hostname is a public IP for hosts reached directly, or an instance name
    resolved by the previous hop for hosts reached through a bastion.
    """
    hostname: str
    ssh_key_pair: KeyPair
    ssh_user_name: str
    port: int = 22
