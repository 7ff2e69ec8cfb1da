"""
Start command line.

Usage:
    python -m startup.cli                                  # all-in-one
    python -m startup.cli master --nodes host1,host2
    python -m startup.cli node --master 10.0.0.5

Starting without --master tries to find the address visible from inside
running containers. If that fails, pass the public address via --master.
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from shared.errors import BootstrapError
from shared.flagtypes import addr_flag, ip_net, string_list
from shared.logging_config import parse_level, setup_logging
from shared.netutil import default_hostname
from startup.config import (
    CERT_DIR,
    KUBERNETES_ADDR,
    LISTEN_ADDR,
    MASTER_ADDR,
    MASTER_SERVICE_NAMESPACE,
    STORE_ADDR,
    STORE_DIR,
    VOLUME_DIR,
    Configuration,
)
from startup.sequencer import start

logger = logging.getLogger(__name__)


def log_level(value: str) -> int:
    """argparse ``type=`` converter for level names such as 'debug'."""
    try:
        return parse_level(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser(prog: str = "start") -> argparse.ArgumentParser:
    defaults = Configuration()
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Launch a cluster server: all-in-one by default, or pass 'master' or 'node'.",
    )
    parser.add_argument("role", nargs="*", help="Optional role: master or node")

    parser.add_argument("--listen", dest="listen_addr", type=addr_flag(LISTEN_ADDR), default=defaults.listen_addr,
                        help="The address to listen for connections on (host, host:port, or URL).")
    parser.add_argument("--master", dest="master_addr", type=addr_flag(MASTER_ADDR), default=defaults.master_addr,
                        help="The address the master can be reached on (host, host:port, or URL). "
                             "Scheme and port default to the --listen scheme and port.")
    parser.add_argument("--etcd", dest="etcd_addr", type=addr_flag(STORE_ADDR), default=defaults.etcd_addr,
                        help="The address of the etcd server (host, host:port, or URL). "
                             "If specified, no built-in etcd will be started.")
    parser.add_argument("--kubernetes", dest="kubernetes_addr", type=addr_flag(KUBERNETES_ADDR),
                        default=defaults.kubernetes_addr,
                        help="The address of the Kubernetes server (host, host:port, or URL). "
                             "If specified, no Kubernetes components will be started.")
    parser.add_argument("--portal-net", dest="portal_net", type=ip_net, default=defaults.portal_net,
                        help="A CIDR notation IP range from which to assign portal IPs.")

    parser.add_argument("--volume-dir", default=VOLUME_DIR, help="The volume storage directory.")
    parser.add_argument("--etcd-dir", default=STORE_DIR, help="The etcd data directory.")
    parser.add_argument("--cert-dir", default=CERT_DIR, help="The certificate data directory.")

    parser.add_argument("--hostname", default=None, help="The hostname to identify this node with the master.")
    parser.add_argument("--nodes", dest="node_list", type=string_list, default=list(defaults.node_list),
                        help="The hostnames of each node. Comma delimited list.")
    parser.add_argument("--cors-allowed-origins", type=string_list, default=[],
                        help="List of allowed origins for CORS, comma separated. "
                             "CORS is enabled for localhost, 127.0.0.1, and the asset server by default.")
    parser.add_argument("--require-authentication", action="store_true",
                        help="Require authentication token for API access.")
    parser.add_argument("--master-service-namespace", default=MASTER_SERVICE_NAMESPACE,
                        help="The namespace from which the master services should be injected into pods.")
    parser.add_argument("--storage-version", default="", help="The storage schema version tag.")
    parser.add_argument("--docker", dest="docker_endpoint", default=None,
                        help="The container runtime endpoint (defaults to $DOCKER_HOST).")

    parser.add_argument("--log-level", type=log_level, default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--log-file", default=None, help="Optional log file path")
    return parser


def config_from_args(ns: argparse.Namespace) -> Configuration:
    return Configuration(
        listen_addr=ns.listen_addr,
        master_addr=ns.master_addr,
        etcd_addr=ns.etcd_addr,
        kubernetes_addr=ns.kubernetes_addr,
        portal_net=ns.portal_net,
        hostname=ns.hostname or default_hostname(),
        node_list=tuple(ns.node_list),
        volume_dir=ns.volume_dir,
        etcd_dir=ns.etcd_dir,
        cert_dir=ns.cert_dir,
        cors_allowed_origins=tuple(ns.cors_allowed_origins),
        require_authentication=ns.require_authentication,
        storage_version=ns.storage_version,
        master_service_namespace=ns.master_service_namespace,
        docker_endpoint=ns.docker_endpoint,
    )


def install_signal_handlers(shutdown: threading.Event) -> None:
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main(argv: Optional[List[str]] = None, shutdown: Optional[threading.Event] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)

    setup_logging("start", level=ns.log_level, log_file=ns.log_file)

    shutdown = shutdown or threading.Event()
    install_signal_handlers(shutdown)

    try:
        start(config_from_args(ns), ns.role, shutdown)
    except BootstrapError as e:
        logger.error(str(e))
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
