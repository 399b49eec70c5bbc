"""Run commands over SSH, directly or hopping through bastion hosts."""

import logging
from typing import List, Optional, Sequence

import paramiko

from network_harness.exceptions import SSHCommandError
from network_harness.ssh.keys import Host

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def _connect(host: Host, sock: Optional[paramiko.Channel], timeout: float) -> paramiko.SSHClient:
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        client.connect(
            hostname=host.hostname,
            port=host.port,
            username=host.ssh_user_name,
            pkey=host.ssh_key_pair.pkey(),
            sock=sock,
            timeout=timeout,
            banner_timeout=timeout,
            auth_timeout=timeout,
            allow_agent=False,
            look_for_keys=False,
        )
    except (paramiko.SSHException, OSError) as e:
        client.close()
        raise SSHCommandError(f"could not connect to {host.hostname}: {e}", hostname=host.hostname)
    return client


def _open_tunnel(client: paramiko.SSHClient, via: Host, target: Host, timeout: float) -> paramiko.Channel:
    transport = client.get_transport()
    if transport is None or not transport.is_active():
        raise SSHCommandError(f"connection to {via.hostname} is not active", hostname=via.hostname)
    try:
        return transport.open_channel(
            "direct-tcpip",
            dest_addr=(target.hostname, target.port),
            src_addr=("127.0.0.1", 0),
            timeout=timeout,
        )
    except (paramiko.SSHException, OSError) as e:
        raise SSHCommandError(
            f"could not reach {target.hostname} from {via.hostname}: {e}",
            hostname=target.hostname,
        )


def _run(client: paramiko.SSHClient, host: Host, command: str, timeout: float) -> str:
    try:
        _, stdout, stderr = client.exec_command(command, timeout=timeout)
        output = stdout.read().decode("utf-8", errors="replace")
        output += stderr.read().decode("utf-8", errors="replace")
        exit_status = stdout.channel.recv_exit_status()
    except (paramiko.SSHException, OSError) as e:
        raise SSHCommandError(f"running '{command}' on {host.hostname} failed: {e}", hostname=host.hostname)

    if exit_status != 0:
        raise SSHCommandError(
            f"'{command}' on {host.hostname} exited with status {exit_status}: {output.strip()}",
            hostname=host.hostname,
            exit_status=exit_status,
            output=output,
        )
    return output


def check_ssh_chain(hosts: Sequence[Host], command: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """
    Run command on the last host, tunnelling through every host before it.

    Each hop opens a direct-tcpip channel from the previous connection, so
    hostnames after the first are resolved by the hop in front of them.

    Returns:
        Combined stdout and stderr of the command

    Raises:
        SSHCommandError: A connection, tunnel or the command itself failed
    """
    if not hosts:
        raise ValueError("at least one host is required")

    clients: List[paramiko.SSHClient] = []
    try:
        sock: Optional[paramiko.Channel] = None
        for index, host in enumerate(hosts):
            client = _connect(host, sock, timeout)
            clients.append(client)
            if index + 1 < len(hosts):
                sock = _open_tunnel(client, host, hosts[index + 1], timeout)

        route = " -> ".join(h.hostname for h in hosts)
        logger.debug(f"Running '{command}' via {route}")
        return _run(clients[-1], hosts[-1], command, timeout)
    finally:
        for client in reversed(clients):
            client.close()


def check_ssh_command(host: Host, command: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Run command on host over a direct connection."""
    return check_ssh_chain([host], command, timeout)


def check_private_ssh_connection(
    public_host: Host,
    private_host: Host,
    command: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Run command on private_host by hopping through public_host."""
    return check_ssh_chain([public_host, private_host], command, timeout)
