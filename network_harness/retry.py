"""Retry helper for flaky operations (metadata propagation, SSH timing)."""

import logging
import time
from typing import Callable, Optional, TypeVar

from network_harness.exceptions import FatalError, MaxRetriesExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")


def do_with_retry(
    description: str,
    max_retries: int,
    sleep_between_retries: float,
    action: Callable[[], T],
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run an action until it succeeds or the retry budget is spent.

    Args:
        description: Human-readable name of the action, used in logs and errors
        max_retries: Maximum number of attempts
        sleep_between_retries: Seconds to wait between attempts
        action: Callable to run; any exception counts as a failed attempt
        sleep: Sleep function (replaceable in tests)

    Returns:
        The value returned by the first successful attempt

    Raises:
        MaxRetriesExceeded: If every attempt failed
        FatalError: If the action raised it; no further attempts are made
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_retries + 1):
        logger.debug(f"{description} (attempt {attempt}/{max_retries})")
        try:
            return action()
        except FatalError:
            raise
        except Exception as e:
            last_error = e
            logger.info(f"{description} returned an error: {e}. Sleeping for {sleep_between_retries}s...")

        if attempt < max_retries:
            sleep(sleep_between_retries)

    raise MaxRetriesExceeded(description, max_retries, last_error)
