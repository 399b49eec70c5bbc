"""Project and region selection for Google Cloud."""

import logging
import os
import random
from typing import Iterable, List, Mapping, Optional

from google.cloud import compute_v1

from network_harness.exceptions import ProjectNotConfiguredError, RegionSelectionError

logger = logging.getLogger(__name__)

PROJECT_ENV_VARS = [
    "GOOGLE_PROJECT",
    "GOOGLE_CLOUD_PROJECT",
    "GOOGLE_CLOUD_PROJECT_ID",
    "GCLOUD_PROJECT",
    "CLOUDSDK_CORE_PROJECT",
]

REGION_OVERRIDE_ENV_VAR = "TERRATEST_GCP_REGION"


def get_project_id_from_env(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the first project id set in the well-known environment variables."""
    environ = os.environ if environ is None else environ
    for name in PROJECT_ENV_VARS:
        value = environ.get(name)
        if value:
            logger.debug(f"Using project {value} from {name}")
            return value

    raise ProjectNotConfiguredError(
        f"Set one of {', '.join(PROJECT_ENV_VARS)} to the Google Cloud project id"
    )


def list_available_regions(project: str, client: Optional[compute_v1.RegionsClient] = None) -> List[str]:
    """Names of the project's regions whose status is UP."""
    client = client or compute_v1.RegionsClient()
    return [region.name for region in client.list(project=project) if region.status == "UP"]


def pick_region(
    available: Iterable[str],
    approved: Optional[Iterable[str]] = None,
    forbidden: Optional[Iterable[str]] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Choose a random region from available, narrowed to approved and minus forbidden."""
    candidates = list(available)
    if approved:
        approved_set = set(approved)
        candidates = [r for r in candidates if r in approved_set]
    if forbidden:
        forbidden_set = set(forbidden)
        candidates = [r for r in candidates if r not in forbidden_set]

    if not candidates:
        raise RegionSelectionError("No region left after applying approved/forbidden lists")

    return (rng or random).choice(sorted(candidates))


def get_random_region(
    project: str,
    approved: Optional[Iterable[str]] = None,
    forbidden: Optional[Iterable[str]] = None,
    client: Optional[compute_v1.RegionsClient] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Pick a random UP region for the project.

    TERRATEST_GCP_REGION, when set, is returned as-is without calling the API.
    """
    environ = os.environ if environ is None else environ
    override = environ.get(REGION_OVERRIDE_ENV_VAR)
    if override:
        logger.info(f"Using region {override} from {REGION_OVERRIDE_ENV_VAR}")
        return override

    region = pick_region(list_available_regions(project, client), approved, forbidden)
    logger.info(f"Using randomly chosen region {region}")
    return region
