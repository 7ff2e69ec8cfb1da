"""
Trust bootstrap.

Establishes the cluster root of trust and mints every internal identity
before any TLS listener opens. Skipped entirely when the master is served
over plain HTTP.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from cryptography import x509

from certs.ca import CertificateAuthority, TLSCertificateConfig, init_ca
from shared.clientconfig import ClientConfig
from shared.errors import TrustBootstrapFailed
from startup.config import CONTAINER_BRIDGE_ADDRESS, LOOPBACK_ALIASES, Configuration
from startup.roles import StartupSelection

logger = logging.getLogger(__name__)

MASTER_SERVER = "master-server"
PLATFORM_API_CLIENT = "platform-api-client"
DEPLOYMENT_TRIGGER_CLIENT = "deployment-trigger-client"
ADMIN_CLIENT = "admin-client"
WORKLOAD_ORCHESTRATION_CLIENT = "workload-orchestration-client"

BASE_CLIENTS = (PLATFORM_API_CLIENT, DEPLOYMENT_TRIGGER_CLIENT, ADMIN_CLIENT)


@dataclass(frozen=True)
class TrustMaterial:
    """Everything the trust bootstrap hands to the master, read-only from here on."""
    server: TLSCertificateConfig
    clients: Dict[str, ClientConfig]
    roots: Tuple[x509.Certificate, ...]
    roots_file: str

    @property
    def identity_names(self) -> Tuple[str, ...]:
        return (self.server.name,) + tuple(self.clients)


def master_hostnames(config: Configuration) -> Tuple[str, ...]:
    """Names the master certificate must be valid for."""
    names = [config.master_addr.host, *LOOPBACK_ALIASES, CONTAINER_BRIDGE_ADDRESS]
    # dedupe, keep order
    return tuple(dict.fromkeys(names))


def bootstrap_trust(
    config: Configuration,
    selection: StartupSelection,
    clock: Callable[[], float] = time.time,
) -> Optional[TrustMaterial]:
    """
    Load or create the CA and issue the master server identity plus one
    client identity per internal consumer.

    Returns:
        The issued material, or None when the master is not served over TLS

    Raises:
        TrustBootstrapFailed: Any certificate directory I/O or signing failure
    """
    if not config.master_tls:
        logger.info("Master is not using TLS, skipping certificate authority")
        return None

    ca_name = f"{config.master_addr.host}@{int(clock())}"
    try:
        ca = init_ca(config.cert_dir, ca_name)
        return _issue_identities(ca, config, selection)
    except (OSError, ValueError, TypeError) as e:
        raise TrustBootstrapFailed(f"Unable to configure certificate authority: {e}") from e


def _issue_identities(ca: CertificateAuthority, config: Configuration, selection: StartupSelection) -> TrustMaterial:
    server = ca.make_server_cert(MASTER_SERVER, master_hostnames(config))

    template = ClientConfig(host=config.master_addr.url)
    clients: Dict[str, ClientConfig] = {}
    for name in BASE_CLIENTS:
        clients[name] = ca.make_client_config(name, template)

    if selection.start_kube:
        kube_template = ClientConfig(host=config.master_addr.url)
        clients[WORKLOAD_ORCHESTRATION_CLIENT] = ca.make_client_config(WORKLOAD_ORCHESTRATION_CLIENT, kube_template)

    logger.info(f"Issued identities: {', '.join([server.name, *clients])} ({len(ca.roots)} trusted roots)")
    return TrustMaterial(server=server, clients=clients, roots=ca.roots, roots_file=ca.roots_file)
