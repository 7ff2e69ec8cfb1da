"""
Start command configuration.

Module-level defaults can be overridden through the environment. The
``Configuration`` record is built once from flags and never mutated; each
bootstrap stage returns a new record instead.
"""

import ipaddress
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from shared.flagtypes import Addr


def _env(name: str, default: str) -> str:
    """Return an environment variable, or ``default`` when unset or empty."""
    value = os.getenv(name, "")
    if not value.strip():
        return default
    return value.strip()


def _int_env(name: str, default: int) -> int:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return int(raw)
    except Exception:
        return default


MASTER_PORT = _int_env("CLUSTER_MASTER_PORT", 8443)
STORE_PORT = _int_env("CLUSTER_STORE_PORT", 4001)
PORTAL_NET = _env("CLUSTER_PORTAL_NET", "172.30.17.0/24")

VOLUME_DIR = "openshift.local.volumes"
STORE_DIR = "openshift.local.etcd"
CERT_DIR = "openshift.local.certificates"

NODE_LIST_PLACEHOLDER = "127.0.0.1"
MASTER_SERVICE_NAMESPACE = "default"

NETWORK_CONTAINER_IMAGE_ENV = "KUBERNETES_NETWORK_CONTAINER_IMAGE"
DEFAULT_NETWORK_CONTAINER_IMAGE = "kubernetes/pause:latest"

# Bridge address reachable from inside workload containers.
CONTAINER_BRIDGE_ADDRESS = "172.17.42.1"
LOOPBACK_ALIASES = ("localhost", "127.0.0.1")


def network_container_image() -> str:
    return _env(NETWORK_CONTAINER_IMAGE_ENV, DEFAULT_NETWORK_CONTAINER_IMAGE)


MASTER_ADDR = Addr(value=f"localhost:{MASTER_PORT}", default_scheme="https", default_port=MASTER_PORT, allow_prefix=True)
LISTEN_ADDR = Addr(value=f"0.0.0.0:{MASTER_PORT}", default_scheme="https", default_port=MASTER_PORT, allow_prefix=True)
STORE_ADDR = Addr(value=f"0.0.0.0:{STORE_PORT}", default_scheme="http", default_port=STORE_PORT)
KUBERNETES_ADDR = Addr(default_scheme="https", default_port=MASTER_PORT)


@dataclass(frozen=True)
class Configuration:
    """Everything the operator can say about this process, parsed once."""

    listen_addr: Addr = field(default_factory=LISTEN_ADDR.default)
    master_addr: Addr = field(default_factory=MASTER_ADDR.default)
    etcd_addr: Addr = field(default_factory=STORE_ADDR.default)
    kubernetes_addr: Addr = field(default_factory=KUBERNETES_ADDR.default)
    portal_net: Union[ipaddress.IPv4Network, ipaddress.IPv6Network] = field(
        default_factory=lambda: ipaddress.ip_network(PORTAL_NET, strict=False)
    )

    hostname: str = "localhost"
    node_list: Tuple[str, ...] = (NODE_LIST_PLACEHOLDER,)

    volume_dir: str = VOLUME_DIR
    etcd_dir: str = STORE_DIR
    cert_dir: str = CERT_DIR

    cors_allowed_origins: Tuple[str, ...] = ()
    require_authentication: bool = False
    storage_version: str = ""
    master_service_namespace: str = MASTER_SERVICE_NAMESPACE
    docker_endpoint: Optional[str] = None

    @property
    def master_tls(self) -> bool:
        return self.master_addr.scheme == "https"
