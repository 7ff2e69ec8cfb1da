"""
Long-running controller loops.

Each controller is a client of the master API: it lists one resource on a
fixed interval and hands the items to a sync callback. The controllers'
own reconciliation logic lives outside the start command; the loop here
only keeps them polling.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

import requests

from shared.clientconfig import ClientConfig

logger = logging.getLogger(__name__)

SyncFunc = Callable[[List[dict]], None]


def _log_items(name: str) -> SyncFunc:
    def sync(items: List[dict]) -> None:
        logger.debug(f"{name}: {len(items)} item(s)")
    return sync


class ControllerLoop:
    """
    Poll ``/<prefix>/<version>/<resource>`` and feed the items to ``sync``.
    """

    def __init__(
        self,
        name: str,
        client: ClientConfig,
        resource: str,
        prefix: str = "osapi",
        interval_seconds: float = 10.0,
        sync: Optional[SyncFunc] = None,
        session: Optional[requests.Session] = None,
    ):
        self.name = name
        self.client = client
        self.resource = resource
        self.url = client.url(f"{prefix}/{client.version}/{resource}")
        self.interval_seconds = interval_seconds
        self.sync = sync or _log_items(name)
        self._session = client.build_session(session)

        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.last_sync_at: Optional[float] = None

    def start(self):
        if self.running:
            logger.warning(f"{self.name} already running")
            return
        self.running = True
        self.thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self.thread.start()
        logger.info(f"Started {self.name} ({self.url})")

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)
        self._session.close()
        logger.info(f"Stopped {self.name}")

    def _run(self):
        while self.running:
            try:
                self.sync_once()
            except requests.RequestException as e:
                logger.warning(f"{self.name} list failed: {e}")
            except Exception as e:
                logger.error(f"{self.name} sync error: {e}", exc_info=True)

            # Sleep in small increments for responsive shutdown
            deadline = time.monotonic() + self.interval_seconds
            while self.running and time.monotonic() < deadline:
                time.sleep(0.1)

    def sync_once(self) -> List[dict]:
        response = self._session.get(self.url, timeout=5)
        response.raise_for_status()
        items = response.json().get("items") or []
        self.sync(items)
        self.last_sync_at = time.time()
        return items
