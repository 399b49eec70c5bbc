"""Compute Engine instance access: lookup, public IP and SSH key metadata."""

import logging
from typing import Optional

from google.cloud import compute_v1

from network_harness.exceptions import InstanceNotFoundError, NoPublicIpError

logger = logging.getLogger(__name__)

SSH_KEYS_METADATA_KEY = "ssh-keys"
METADATA_TIMEOUT_SECONDS = 120


def zone_from_url(zone: str) -> str:
    """'https://.../zones/us-central1-a' or 'zones/us-central1-a' -> 'us-central1-a'."""
    return zone.rstrip("/").split("/")[-1]


class Instance:
    """A Compute Engine instance in a known project and zone."""

    def __init__(
        self,
        project: str,
        zone: str,
        instance: compute_v1.Instance,
        client: Optional[compute_v1.InstancesClient] = None,
    ):
        self.project = project
        self.zone = zone_from_url(zone)
        self.instance = instance
        self.client = client or compute_v1.InstancesClient()

    @property
    def name(self) -> str:
        return self.instance.name

    def __repr__(self) -> str:
        return f"Instance(project={self.project!r}, zone={self.zone!r}, name={self.name!r})"

    def refresh(self) -> compute_v1.Instance:
        """Re-read the instance from the API."""
        self.instance = self.client.get(project=self.project, zone=self.zone, instance=self.name)
        return self.instance

    def get_public_ip(self) -> str:
        """
        First external (NAT) IP across the instance's network interfaces.

        Raises:
            NoPublicIpError: The instance has no access config with an IP
        """
        for interface in self.instance.network_interfaces:
            for access_config in interface.access_configs:
                if access_config.nat_i_p:
                    return access_config.nat_i_p

        raise NoPublicIpError(self.name)

    def add_ssh_key(self, username: str, public_key: str) -> None:
        """
        Append a key for username to the instance's ssh-keys metadata.

        The write is conditional on the metadata fingerprint read just before,
        so a concurrent change makes the API reject it; callers retry.
        """
        current = self.refresh().metadata
        entry = f"{username}:{public_key.strip()}"

        items = []
        found = False
        for item in current.items:
            if item.key == SSH_KEYS_METADATA_KEY:
                found = True
                existing = (item.value or "").rstrip("\n")
                if entry in existing.splitlines():
                    # an earlier attempt landed but its operation wait timed out
                    logger.debug(f"SSH key for {username} already present on {self.name}")
                    return
                value = f"{existing}\n{entry}" if existing else entry
                items.append(compute_v1.Items(key=item.key, value=value))
            else:
                items.append(compute_v1.Items(key=item.key, value=item.value))
        if not found:
            items.append(compute_v1.Items(key=SSH_KEYS_METADATA_KEY, value=entry))

        metadata = compute_v1.Metadata(fingerprint=current.fingerprint, items=items)

        logger.debug(f"Adding SSH key for {username} to {self.name}")
        operation = self.client.set_metadata(
            project=self.project,
            zone=self.zone,
            instance=self.name,
            metadata_resource=metadata,
        )
        operation.result(timeout=METADATA_TIMEOUT_SECONDS)
        logger.info(f"Added SSH key for {username} to {self.name}")


def fetch_instance(
    project: str,
    name: str,
    client: Optional[compute_v1.InstancesClient] = None,
) -> Instance:
    """
    Find an instance by name in any zone of the project.

    Raises:
        InstanceNotFoundError: No zone holds an instance with that name
    """
    client = client or compute_v1.InstancesClient()
    request = compute_v1.AggregatedListInstancesRequest(
        project=project,
        filter=f'name = "{name}"',
    )

    for zone, scoped_list in client.aggregated_list(request=request):
        for instance in scoped_list.instances:
            if instance.name == name:
                logger.debug(f"Found instance {name} in {zone}")
                return Instance(project, zone, instance, client=client)

    raise InstanceNotFoundError(project, name)
