"""
Embedded workload-orchestration master.

Used only when no external workload-orchestration endpoint was given: its
API is served by the master listener and its control loops run in-process.
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import List, Union

from master.controllers import ControllerLoop
from shared.clientconfig import ClientConfig

logger = logging.getLogger(__name__)


@dataclass
class KubeMasterConfig:
    master_host: str
    master_port: int
    node_hosts: List[str]
    portal_net: Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
    client: ClientConfig
    controllers: List[ControllerLoop] = field(default_factory=list, repr=False)

    def ensure_portal_net(self) -> None:
        """
        Raises:
            ValueError: The master host sits inside the portal network
        """
        try:
            master_ip = ipaddress.ip_address(self.master_host)
        except ValueError:
            master_ip = None
        if master_ip is not None and master_ip.version == self.portal_net.version and master_ip in self.portal_net:
            raise ValueError(f"portal network {self.portal_net} must not contain the master address {self.master_host}")
        logger.info(f"Portal network: {self.portal_net}")

    def _run_loop(self, name: str, resource: str) -> ControllerLoop:
        loop = ControllerLoop(name, self.client, resource, prefix="api")
        loop.start()
        self.controllers.append(loop)
        return loop

    def run_scheduler(self) -> ControllerLoop:
        return self._run_loop("scheduler", "pods")

    def run_replication_controller(self) -> ControllerLoop:
        return self._run_loop("replication-controller", "replicationControllers")

    def run_endpoint_controller(self) -> ControllerLoop:
        return self._run_loop("endpoint-controller", "services")

    def run_minion_controller(self) -> ControllerLoop:
        return self._run_loop("minion-controller", "minions")
