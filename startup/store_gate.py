"""
Store readiness gate.

Blocks until the backing store answers, because every other component
depends on durable state being reachable.
"""

import logging
import time
from typing import Callable

from shared.errors import StoreUnreachable
from store.client import StoreClient, StoreError, is_not_found

logger = logging.getLogger(__name__)

# ~5s total: attempts x interval
READY_ATTEMPTS = 100
READY_INTERVAL_SECONDS = 0.05


def wait_for_store(
    client: StoreClient,
    attempts: int = READY_ATTEMPTS,
    interval_seconds: float = READY_INTERVAL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> StoreClient:
    """
    Probe the store root key until it answers.

    "Key not found" counts as ready: the store is up, just empty. Any other
    error means not ready yet. There is no backoff.

    Raises:
        StoreUnreachable: Every one of ``attempts`` probes failed
    """
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            client.get("/")
            return client
        except StoreError as e:
            if is_not_found(e):
                return client
            last_error = e
            logger.debug(f"Store not ready (attempt {attempt}/{attempts}): {e}")

        if attempt < attempts:
            sleep(interval_seconds)

    raise StoreUnreachable(f"Could not reach etcd: {last_error}")
