"""
Node configuration and launch hooks.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from node.agent import WorkloadAgent
from node.docker import DockerHelper
from node.proxy import ServiceProxy
from store.client import StoreClient

logger = logging.getLogger(__name__)


@dataclass
class NodeConfig:
    bind_host: str
    node_host: str
    master_host: str
    volume_dir: str
    network_container_image: str
    store_client: StoreClient
    master_service_namespace: str = "default"

    proxy: Optional[ServiceProxy] = field(default=None, repr=False)
    agent: Optional[WorkloadAgent] = field(default=None, repr=False)

    def ensure_volume_dir(self) -> Path:
        path = Path(self.volume_dir).absolute()
        path.mkdir(parents=True, exist_ok=True)
        self.volume_dir = str(path)
        logger.info(f"Using volume directory {self.volume_dir}")
        return path

    def ensure_docker(self, docker: DockerHelper) -> str:
        """
        Raises:
            RuntimeError: The container runtime is not reachable
        """
        version = docker.ping()
        logger.info(f"Connected to container runtime (version {version})")
        return version

    def run_proxy(self) -> ServiceProxy:
        self.proxy = ServiceProxy(self.store_client, self.bind_host)
        self.proxy.start()
        return self.proxy

    def run_agent(self) -> WorkloadAgent:
        self.agent = WorkloadAgent(
            store_client=self.store_client,
            node_host=self.node_host,
            master_host=self.master_host,
            volume_dir=self.volume_dir,
            network_container_image=self.network_container_image,
            master_service_namespace=self.master_service_namespace,
        )
        self.agent.start()
        return self.agent
