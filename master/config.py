"""
Master configuration and launch hooks.

The start command fills a ``MasterConfig`` with resolved addresses, client
identities and trust roots, then calls its ``run_*`` methods in order.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from master.api import create_api_app
from master.assets import create_asset_app
from master.controllers import ControllerLoop
from master.kube import KubeMasterConfig
from master.server import ServerThread
from shared.clientconfig import ClientConfig
from store.client import StoreClient

logger = logging.getLogger(__name__)


def _split_host_port(addr: str):
    host, _, port = addr.rpartition(":")
    return host.strip("[]"), int(port)


@dataclass
class MasterConfig:
    tls: bool
    bind_addr: str
    master_addr: str
    asset_addr: str
    kubernetes_addr: str
    store_client: StoreClient
    require_authentication: bool = False
    storage_version: str = ""

    master_cert_file: Optional[str] = None
    master_key_file: Optional[str] = None
    asset_cert_file: Optional[str] = None
    asset_key_file: Optional[str] = None
    client_ca_file: Optional[str] = None

    os_client_config: Optional[ClientConfig] = None
    deployer_client_config: Optional[ClientConfig] = None
    kube_client_config: Optional[ClientConfig] = None

    cors_allowed_origins: List[str] = field(default_factory=list)
    servers: List[ServerThread] = field(default_factory=list, repr=False)
    controllers: List[ControllerLoop] = field(default_factory=list, repr=False)

    def build_clients(self) -> None:
        """
        Raises:
            ValueError: A required client config is missing
        """
        for name in ("os_client_config", "deployer_client_config", "kube_client_config"):
            if getattr(self, name) is None:
                raise ValueError(f"{name} is required before starting the master")
        if self.tls and not self.os_client_config.has_identity:
            raise ValueError("a TLS master requires client identities")

    def ensure_cors_allowed_origins(self, origins: List[str]) -> List[str]:
        """
        Raises:
            ValueError: An origin is not a valid regular expression
        """
        allowed = []
        for origin in origins:
            try:
                re.compile(origin)
            except re.error as e:
                raise ValueError(f"Invalid CORS allowed origin {origin!r}: {e}")
            if origin not in allowed:
                allowed.append(origin)
        self.cors_allowed_origins = allowed
        return allowed

    def kube_client(self) -> ClientConfig:
        return self.kube_client_config

    def run_api(self, kube_master: Optional[KubeMasterConfig] = None) -> ServerThread:
        """Bind the API listener and return once it accepts requests."""
        app = create_api_app(
            store=self.store_client,
            cors_allowed_origins=self.cors_allowed_origins,
            require_authentication=self.require_authentication,
            node_hosts=kube_master.node_hosts if kube_master else None,
            embed_kube=kube_master is not None,
        )
        host, port = _split_host_port(self.bind_addr)
        server = ServerThread(
            "api", app, host, port,
            cert_file=self.master_cert_file if self.tls else None,
            key_file=self.master_key_file if self.tls else None,
            client_ca_file=self.client_ca_file if self.tls else None,
        )
        server.start()
        self.servers.append(server)
        logger.info(f"Master API available at {self.master_addr}")
        return server

    def run_asset_server(self) -> ServerThread:
        app = create_asset_app(self.master_addr, self.kubernetes_addr)
        _, port = _split_host_port(self.asset_addr)
        host, _ = _split_host_port(self.bind_addr)
        server = ServerThread(
            "assets", app, host, port,
            cert_file=self.asset_cert_file if self.tls else None,
            key_file=self.asset_key_file if self.tls else None,
        )
        server.start()
        self.servers.append(server)
        scheme = "https" if self.tls else "http"
        logger.info(f"Web console available at {scheme}://{self.asset_addr}")
        return server

    def _run_controller(self, name: str, client: ClientConfig, resource: str) -> ControllerLoop:
        loop = ControllerLoop(name, client, resource)
        loop.start()
        self.controllers.append(loop)
        return loop

    def run_build_controller(self) -> ControllerLoop:
        return self._run_controller("build-controller", self.os_client_config, "builds")

    def run_build_image_change_trigger_controller(self) -> ControllerLoop:
        return self._run_controller("build-image-trigger", self.os_client_config, "imageRepositories")

    def run_deployment_controller(self) -> ControllerLoop:
        return self._run_controller("deployment-controller", self.deployer_client_config, "deployments")

    def run_deployment_config_controller(self) -> ControllerLoop:
        return self._run_controller("deployment-config-controller", self.os_client_config, "deploymentConfigs")

    def run_deployment_config_change_controller(self) -> ControllerLoop:
        return self._run_controller("deployment-config-change-controller", self.os_client_config, "deploymentConfigs")

    def run_deployment_image_change_trigger_controller(self) -> ControllerLoop:
        return self._run_controller("deployment-image-trigger", self.os_client_config, "imageRepositories")
