"""
Startup sequencer.

Runs the bootstrap stages in order (role, addresses, store, trust), builds
the startup plan and launches each collaborator once its prerequisites are
up. Any stage failure stops the sequence and propagates unchanged.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from master.config import MasterConfig
from master.events import start_recording
from master.kube import KubeMasterConfig
from node.config import NodeConfig
from node.docker import DockerHelper
from shared.clientconfig import ClientConfig
from shared.errors import BootstrapError, DependencyStartFailed, InvalidArguments
from shared.flagtypes import join_host_port
from shared.netutil import default_local_ip4
from startup.addresses import describe_addresses, negotiate_addresses
from startup.config import LOOPBACK_ALIASES, Configuration, network_container_image
from startup.profile import asset_port, validate_resolved
from startup.roles import Role, StartupSelection, resolve_role, select_components
from startup.store_gate import wait_for_store
from startup.trust import (
    DEPLOYMENT_TRIGGER_CLIENT,
    PLATFORM_API_CLIENT,
    WORKLOAD_ORCHESTRATION_CLIENT,
    TrustMaterial,
    bootstrap_trust,
)
from store.client import StoreClient
from store.embedded import EmbeddedStoreConfig

logger = logging.getLogger(__name__)


@dataclass
class StartupPlan:
    """Fully resolved component configurations, built once and launched once."""
    role: Role
    selection: StartupSelection
    config: Configuration
    store_config: Optional[EmbeddedStoreConfig] = None
    master_config: Optional[MasterConfig] = None
    kube_master_config: Optional[KubeMasterConfig] = None
    node_config: Optional[NodeConfig] = None
    trust: Optional[TrustMaterial] = None


def _step(component: str, func: Callable, *args, **kwargs):
    """Run one collaborator start; foreign errors become DependencyStartFailed."""
    try:
        return func(*args, **kwargs)
    except BootstrapError:
        raise
    except Exception as e:
        raise DependencyStartFailed(component, e) from e


def asset_address(config: Configuration) -> str:
    return join_host_port(config.master_addr.host, asset_port(config))


def cors_allowed_origins(config: Configuration) -> List[str]:
    """Operator origins plus the console listener and both loopback aliases."""
    return [*config.cors_allowed_origins, asset_address(config), *LOOPBACK_ALIASES]


def build_store_config(config: Configuration) -> EmbeddedStoreConfig:
    return EmbeddedStoreConfig(
        bind_addr=config.listen_addr.host,
        peer_bind_addr=config.listen_addr.host,
        master_addr=config.etcd_addr.host_port,
        etcd_dir=config.etcd_dir,
    )


def build_master_config(
    config: Configuration,
    selection: StartupSelection,
    store_client: StoreClient,
    trust: Optional[TrustMaterial],
) -> MasterConfig:
    master = MasterConfig(
        tls=config.master_tls,
        bind_addr=config.listen_addr.host_port,
        master_addr=config.master_addr.url,
        asset_addr=asset_address(config),
        kubernetes_addr=config.kubernetes_addr.url,
        store_client=store_client,
        require_authentication=config.require_authentication,
        storage_version=config.storage_version,
    )

    if selection.start_kube:
        master.kube_client_config = ClientConfig(host=config.master_addr.url)
    else:
        # TODO: configure credentials for an external workload-orchestration endpoint
        master.kube_client_config = ClientConfig(host=config.kubernetes_addr.url)

    if trust is not None:
        master.master_cert_file = trust.server.cert_file
        master.master_key_file = trust.server.key_file
        master.asset_cert_file = trust.server.cert_file
        master.asset_key_file = trust.server.key_file
        master.client_ca_file = trust.roots_file
        master.os_client_config = trust.clients[PLATFORM_API_CLIENT]
        master.deployer_client_config = trust.clients[DEPLOYMENT_TRIGGER_CLIENT]
        if selection.start_kube:
            master.kube_client_config = trust.clients[WORKLOAD_ORCHESTRATION_CLIENT]
    else:
        # No security, every internal client shares one config
        shared = ClientConfig(host=config.master_addr.url)
        master.os_client_config = shared
        master.deployer_client_config = shared

    return master


def build_kube_master_config(config: Configuration, master: MasterConfig) -> KubeMasterConfig:
    return KubeMasterConfig(
        master_host=config.master_addr.host,
        master_port=config.master_addr.port,
        node_hosts=list(config.node_list),
        portal_net=config.portal_net,
        client=master.kube_client_config,
    )


def build_node_config(config: Configuration, store_client: StoreClient) -> NodeConfig:
    return NodeConfig(
        bind_host=config.listen_addr.host,
        node_host=config.hostname,
        master_host=config.master_addr.url,
        volume_dir=config.volume_dir,
        network_container_image=network_container_image(),
        store_client=store_client,
        master_service_namespace=config.master_service_namespace,
    )


def build_startup_plan(
    config: Configuration,
    role: Role,
    selection: StartupSelection,
    store_client: StoreClient,
    trust: Optional[TrustMaterial] = None,
    store_config: Optional[EmbeddedStoreConfig] = None,
) -> StartupPlan:
    plan = StartupPlan(role=role, selection=selection, config=config, store_config=store_config, trust=trust)
    if selection.start_master:
        plan.master_config = build_master_config(config, selection, store_client, trust)
        if selection.start_kube:
            plan.kube_master_config = build_kube_master_config(config, plan.master_config)
    if selection.start_node:
        plan.node_config = build_node_config(config, store_client)
    return plan


def launch_master(plan: StartupPlan, recorder: Callable = start_recording) -> None:
    master = plan.master_config
    kube = plan.kube_master_config

    _step("master clients", master.build_clients)
    _step("master CORS", master.ensure_cors_allowed_origins, cors_allowed_origins(plan.config))

    if kube is not None:
        _step("portal network", kube.ensure_portal_net)
        _step("master API", master.run_api, kube)
        _step("scheduler", kube.run_scheduler)
        _step("replication controller", kube.run_replication_controller)
        _step("endpoint controller", kube.run_endpoint_controller)
        _step("minion controller", kube.run_minion_controller)
    else:
        _step("master API", master.run_api)

    _step("event recording", recorder, master.kube_client(), "master")

    _step("asset server", master.run_asset_server)
    _step("build controller", master.run_build_controller)
    _step("build image trigger", master.run_build_image_change_trigger_controller)
    _step("deployment controller", master.run_deployment_controller)
    _step("deployment config controller", master.run_deployment_config_controller)
    _step("deployment config change controller", master.run_deployment_config_change_controller)
    _step("deployment image trigger", master.run_deployment_image_change_trigger_controller)


def launch_node(plan: StartupPlan, docker: Optional[DockerHelper] = None) -> None:
    node = plan.node_config
    docker = docker or DockerHelper(plan.config.docker_endpoint)

    _step("volume directory", node.ensure_volume_dir)
    _step("container runtime", node.ensure_docker, docker)
    # Proxy first so traffic is never dropped while the agent initializes
    _step("network proxy", node.run_proxy)
    _step("workload agent", node.run_agent)


def launch(plan: StartupPlan, docker: Optional[DockerHelper] = None, recorder: Callable = start_recording) -> StartupPlan:
    """Start every collaborator in the plan in dependency order."""
    if plan.master_config is not None:
        launch_master(plan, recorder)
    if plan.node_config is not None:
        launch_node(plan, docker)
    logger.info(f"{plan.role.value} startup complete")
    return plan


def prepare(
    config: Configuration,
    args: Sequence[str],
    discover_ip: Callable[[], str] = default_local_ip4,
    store_client_factory: Callable[[List[str]], StoreClient] = StoreClient,
    ready_check: Callable[[StoreClient], StoreClient] = wait_for_store,
    trust_bootstrap: Callable = bootstrap_trust,
) -> StartupPlan:
    """
    Run every bootstrap stage up to, but not including, launching the master
    and node collaborators. The embedded store is started here because the
    readiness gate depends on it.
    """
    role = resolve_role(args)
    selection = select_components(role, config)

    config = negotiate_addresses(config, role, discover_ip)
    describe_addresses(config, role)
    try:
        validate_resolved(config, role)
    except ValueError as e:
        raise InvalidArguments(str(e)) from e

    store_config = None
    if selection.start_store:
        store_config = build_store_config(config)
        _step("embedded store", store_config.run)

    store_client = store_client_factory([config.etcd_addr.url])
    if selection.start_master:
        ready_check(store_client)

    trust = trust_bootstrap(config, selection) if selection.start_master else None
    return build_startup_plan(config, role, selection, store_client, trust, store_config)


def start(
    config: Configuration,
    args: Sequence[str],
    shutdown: threading.Event,
    launcher: Callable[[StartupPlan], StartupPlan] = launch,
    **stages,
) -> StartupPlan:
    """
    Bootstrap, launch, then block until ``shutdown`` is set.

    ``stages`` forwards stage overrides to ``prepare``.
    """
    plan = prepare(config, args, **stages)
    launcher(plan)
    shutdown.wait()
    logger.info("Shutdown requested")
    return plan
