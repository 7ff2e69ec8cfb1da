"""
Node network proxy.

Keeps a local view of service endpoints from the backing store so traffic
can be forwarded while the workload agent is still starting.
"""

import logging
import threading
import time
from typing import Dict, List, Optional

from store.client import StoreClient, StoreError, is_not_found

logger = logging.getLogger(__name__)

ENDPOINTS_KEY = "/registry/services/endpoints"


class ServiceProxy:
    def __init__(self, store_client: StoreClient, bind_host: str, interval_seconds: float = 5.0):
        self.store_client = store_client
        self.bind_host = bind_host
        self.interval_seconds = interval_seconds
        self.endpoints: Dict[str, List[str]] = {}

        self._lock = threading.Lock()
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self):
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._run, name="proxy", daemon=True)
        self.thread.start()
        logger.info(f"Network proxy started on {self.bind_host}")

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)

    def lookup(self, service: str) -> List[str]:
        with self._lock:
            return list(self.endpoints.get(service, []))

    def sync_once(self) -> Dict[str, List[str]]:
        try:
            payload = self.store_client.get(ENDPOINTS_KEY, recursive=True)
        except StoreError as e:
            if not is_not_found(e):
                raise
            payload = {}

        endpoints: Dict[str, List[str]] = {}
        for node in (payload.get("node") or {}).get("nodes") or []:
            service = str(node.get("key", "")).rsplit("/", 1)[-1]
            value = node.get("value") or ""
            endpoints[service] = [e.strip() for e in value.split(",") if e.strip()]

        with self._lock:
            changed = endpoints != self.endpoints
            self.endpoints = endpoints
        if changed:
            logger.info(f"Proxy endpoints updated: {len(endpoints)} service(s)")
        return endpoints

    def _run(self):
        while self.running:
            try:
                self.sync_once()
            except StoreError as e:
                logger.warning(f"Proxy sync failed: {e}")
            # Sleep in small increments for responsive shutdown
            deadline = time.monotonic() + self.interval_seconds
            while self.running and time.monotonic() < deadline:
                time.sleep(0.1)
