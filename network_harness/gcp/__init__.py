"""Google Cloud helpers used by the harness."""

from .project import (
    get_project_id_from_env,
    get_random_region,
    list_available_regions,
    pick_region,
)
from .instance import Instance, fetch_instance, zone_from_url

__all__ = [
    "get_project_id_from_env",
    "get_random_region",
    "list_available_regions",
    "pick_region",
    "Instance",
    "fetch_instance",
    "zone_from_url",
]
