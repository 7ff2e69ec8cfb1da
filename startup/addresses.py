"""
Address negotiation.

Fills in every address the operator did not provide, before any listener
binds or any outbound connection is attempted. After this stage every
address read by the rest of the start-up has a scheme, host and port.
"""

import logging
from dataclasses import replace
from typing import Callable

from shared.errors import AddressDiscoveryFailed
from shared.flagtypes import join_host_port
from shared.netutil import default_local_ip4
from startup.config import NODE_LIST_PLACEHOLDER, Configuration
from startup.roles import Role

logger = logging.getLogger(__name__)


def default_master_address(
    config: Configuration,
    discover_ip: Callable[[], str] = default_local_ip4,
) -> Configuration:
    """
    Resolve an unset master address to the first public IPv4 address of this
    host, then derive the store address from the master host when the store
    was not provided either.

    Raises:
        AddressDiscoveryFailed: No routable local address was found
    """
    master = config.master_addr

    if not master.provided:
        # Scheme and port follow --listen when the operator set it
        listen = config.listen_addr
        port = listen.port if listen.provided else master.port
        scheme = listen.scheme if listen.provided else master.scheme

        try:
            host = discover_ip()
        except LookupError as e:
            raise AddressDiscoveryFailed(f"Unable to find the public address of this master: {e}") from e

        try:
            master = master.set(f"{scheme}://{join_host_port(host, port)}")
        except ValueError as e:
            raise AddressDiscoveryFailed(f"Unable to set public address of this master: {e}") from e

    return derive_store_address(replace(config, master_addr=master))


def derive_store_address(config: Configuration) -> Configuration:
    """Point an unset store address at the master host and the store's default port."""
    store = config.etcd_addr
    if store.provided:
        return config

    # The store shares the master host so every member can reach it without another address
    try:
        store = store.set(join_host_port(config.master_addr.host, store.default_port))
    except ValueError as e:
        raise AddressDiscoveryFailed(f"Unable to set public address of the store: {e}") from e
    return replace(config, etcd_addr=store)


def negotiate_addresses(
    config: Configuration,
    role: Role,
    discover_ip: Callable[[], str] = default_local_ip4,
) -> Configuration:
    """
    Apply every address default for ``role`` and return the resolved configuration.

    Running it again on its own output returns an equal configuration.
    """
    if role.starts_master:
        config = default_master_address(config, discover_ip)
    else:
        # Nodes never look up their own address; the store follows the master host
        config = derive_store_address(config)

    # A local master serves the workload-orchestration API itself
    if not config.kubernetes_addr.provided:
        config = replace(config, kubernetes_addr=replace(
            config.master_addr,
            provided=False,
            default_scheme=config.kubernetes_addr.default_scheme,
            default_port=config.kubernetes_addr.default_port,
        ))

    if role.starts_master and list(config.node_list) == [NODE_LIST_PLACEHOLDER]:
        config = replace(config, node_list=(config.hostname,))

    return config


def describe_addresses(config: Configuration, role: Role) -> None:
    """Log the chosen role and the addresses it will use."""
    if role is Role.MASTER_ONLY:
        logger.info(f"Starting a master, reachable at {config.master_addr} (etcd: {config.etcd_addr})")
    elif role is Role.NODE_ONLY:
        logger.info(f"Starting a node, connecting to {config.master_addr} (etcd: {config.etcd_addr})")
    else:
        logger.info(f"Starting an all-in-one, reachable at {config.master_addr} (etcd: {config.etcd_addr})")

    if role.starts_master:
        for host in config.node_list:
            logger.info(f"  Node: {host}")
