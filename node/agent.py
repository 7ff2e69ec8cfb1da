"""
Node workload agent.

Watches the backing store for the workloads assigned to this host.
"""

import json
import logging
import threading
import time
from typing import List, Optional

from store.client import StoreClient, StoreError, is_not_found

logger = logging.getLogger(__name__)


class WorkloadAgent:
    def __init__(
        self,
        store_client: StoreClient,
        node_host: str,
        master_host: str,
        volume_dir: str,
        network_container_image: str,
        master_service_namespace: str,
        interval_seconds: float = 10.0,
    ):
        self.store_client = store_client
        self.node_host = node_host
        self.master_host = master_host
        self.volume_dir = volume_dir
        self.network_container_image = network_container_image
        self.master_service_namespace = master_service_namespace
        self.interval_seconds = interval_seconds
        self.manifests: List[dict] = []

        self.running = False
        self.thread: Optional[threading.Thread] = None

    @property
    def manifest_key(self) -> str:
        return f"/registry/hosts/{self.node_host}/kubelet"

    def start(self):
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(target=self._run, name="agent", daemon=True)
        self.thread.start()
        logger.info(
            f"Workload agent started for {self.node_host} "
            f"(master={self.master_host}, network image={self.network_container_image})"
        )

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)

    def sync_once(self) -> List[dict]:
        try:
            payload = self.store_client.get(self.manifest_key)
        except StoreError as e:
            if not is_not_found(e):
                raise
            payload = {}

        raw = (payload.get("node") or {}).get("value")
        manifests = json.loads(raw) if raw else []
        if manifests != self.manifests:
            logger.info(f"Workload agent: {len(manifests)} manifest(s) assigned to {self.node_host}")
        self.manifests = manifests
        return manifests

    def _run(self):
        while self.running:
            try:
                self.sync_once()
            except (StoreError, ValueError) as e:
                logger.warning(f"Workload agent sync failed: {e}")
            # Sleep in small increments for responsive shutdown
            deadline = time.monotonic() + self.interval_seconds
            while self.running and time.monotonic() < deadline:
                time.sleep(0.1)
