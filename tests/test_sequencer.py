import threading
from unittest.mock import MagicMock

import pytest

from shared.clientconfig import ClientConfig
from shared.errors import DependencyStartFailed, InvalidArguments, StoreUnreachable
from startup.config import LISTEN_ADDR, MASTER_ADDR, STORE_ADDR, Configuration
from startup.roles import Role, StartupSelection
from startup.sequencer import (
    StartupPlan,
    build_master_config,
    build_startup_plan,
    cors_allowed_origins,
    launch,
    prepare,
    start,
)
from startup.trust import DEPLOYMENT_TRIGGER_CLIENT, PLATFORM_API_CLIENT
from store.embedded import EmbeddedStoreConfig

from conftest import FakeStore

ALL = StartupSelection(start_store=True, start_master=True, start_node=True, start_kube=True)
MASTER_NO_KUBE = StartupSelection(start_store=False, start_master=True, start_node=False, start_kube=False)


def no_address():
    raise LookupError("no interfaces")


class Stages:
    """Records bootstrap stage calls in order."""

    def __init__(self, ready_error=None):
        self.events = []
        self.stores = []
        self.ready_error = ready_error

    def store_client_factory(self, servers):
        store = FakeStore(servers=servers)
        self.stores.append(store)
        return store

    def ready_check(self, client):
        self.events.append("ready")
        if self.ready_error:
            raise self.ready_error
        return client

    def trust_bootstrap(self, config, selection):
        self.events.append("trust")
        return None

    def kwargs(self, discover_ip=lambda: "10.0.0.5"):
        return dict(
            discover_ip=discover_ip,
            store_client_factory=self.store_client_factory,
            ready_check=self.ready_check,
            trust_bootstrap=self.trust_bootstrap,
        )


@pytest.fixture
def no_embedded_store(monkeypatch):
    started = []
    monkeypatch.setattr(EmbeddedStoreConfig, "run", lambda self: started.append(self.command()))
    return started


class TestPrepare:
    def test_all_in_one(self, no_embedded_store):
        stages = Stages()
        plan = prepare(Configuration(hostname="host1"), [], **stages.kwargs())

        assert plan.role is Role.ALL_IN_ONE
        assert stages.events == ["ready", "trust"]
        assert len(no_embedded_store) == 1
        assert "10.0.0.5:4001" in no_embedded_store[0]
        assert stages.stores[0].servers == ["http://10.0.0.5:4001"]
        assert plan.master_config.master_addr == "https://10.0.0.5:8443"
        assert plan.kube_master_config.node_hosts == ["host1"]
        assert plan.node_config.node_host == "host1"

    def test_master_with_explicit_address(self, no_embedded_store):
        stages = Stages()
        config = Configuration(master_addr=MASTER_ADDR.set("203.0.113.9:9443"))
        plan = prepare(config, ["master"], **stages.kwargs(no_address))

        assert stages.stores[0].servers == ["http://203.0.113.9:4001"]
        assert plan.master_config.master_addr == "https://203.0.113.9:9443"
        assert plan.node_config is None

    def test_node_skips_gate_and_trust(self, no_embedded_store):
        stages = Stages()
        config = Configuration(master_addr=MASTER_ADDR.set("10.0.0.5:8443"))
        plan = prepare(config, ["node"], **stages.kwargs(no_address))

        assert stages.events == []
        assert no_embedded_store == []
        assert stages.stores[0].servers == ["http://10.0.0.5:4001"]
        assert plan.master_config is None
        assert plan.trust is None
        assert plan.node_config.master_host == "https://10.0.0.5:8443"

    def test_external_store_not_embedded(self, no_embedded_store):
        stages = Stages()
        config = Configuration(etcd_addr=STORE_ADDR.set("store.example.com:2379"))
        prepare(config, [], **stages.kwargs())

        assert no_embedded_store == []
        assert stages.stores[0].servers == ["http://store.example.com:2379"]

    def test_unreachable_store_stops_before_trust(self, no_embedded_store):
        stages = Stages(ready_error=StoreUnreachable("Could not reach etcd: refused"))
        with pytest.raises(StoreUnreachable):
            prepare(Configuration(), ["master"], **stages.kwargs())
        assert stages.events == ["ready"]

    def test_bad_arguments_stop_everything(self, no_embedded_store):
        stages = Stages()
        with pytest.raises(InvalidArguments):
            prepare(Configuration(), ["master", "node"], **stages.kwargs())
        assert stages.stores == []
        assert no_embedded_store == []

    def test_port_collision_is_invalid(self, no_embedded_store):
        stages = Stages()
        config = Configuration(listen_addr=LISTEN_ADDR.set("0.0.0.0:4000"))
        with pytest.raises(InvalidArguments, match="conflicts"):
            prepare(config, ["master"], **stages.kwargs())

    def test_missing_store_binary(self, monkeypatch):
        def missing(self):
            raise FileNotFoundError("etcd binary not found on PATH")

        monkeypatch.setattr(EmbeddedStoreConfig, "run", missing)
        with pytest.raises(DependencyStartFailed, match="embedded store"):
            prepare(Configuration(), [], **Stages().kwargs())


def resolved_config():
    return Configuration(
        master_addr=MASTER_ADDR.set("10.0.0.5"),
        etcd_addr=STORE_ADDR.set("10.0.0.5"),
        hostname="host1",
        cors_allowed_origins=("console.example.com",),
    )


def test_cors_list_always_includes_console_and_loopback():
    origins = cors_allowed_origins(resolved_config())
    assert origins == ["console.example.com", "10.0.0.5:8444", "localhost", "127.0.0.1"]


class TestBuildMasterConfig:
    def test_without_tls_clients_share_one_config(self):
        config = Configuration(master_addr=MASTER_ADDR.set("http://10.0.0.5:8080"))
        master = build_master_config(config, MASTER_NO_KUBE, FakeStore(), None)

        assert master.tls is False
        assert master.os_client_config is master.deployer_client_config
        assert master.os_client_config == ClientConfig(host="http://10.0.0.5:8080")
        assert master.master_cert_file is None

    def test_with_trust(self):
        trust = MagicMock()
        trust.roots_file = "/certs/root.crt"
        trust.server.cert_file = "/certs/master-server/cert.crt"
        trust.server.key_file = "/certs/master-server/key.key"
        platform = ClientConfig(host="https://10.0.0.5:8443", cert_file="p.crt", key_file="p.key")
        deployer = ClientConfig(host="https://10.0.0.5:8443", cert_file="d.crt", key_file="d.key")
        trust.clients = {PLATFORM_API_CLIENT: platform, DEPLOYMENT_TRIGGER_CLIENT: deployer}

        master = build_master_config(resolved_config(), MASTER_NO_KUBE, FakeStore(), trust)

        assert master.tls is True
        assert master.client_ca_file == "/certs/root.crt"
        assert master.master_cert_file == "/certs/master-server/cert.crt"
        assert master.os_client_config is platform
        assert master.deployer_client_config is deployer

    def test_plan_for_node_only(self):
        node = StartupSelection(start_store=False, start_master=False, start_node=True, start_kube=False)
        plan = build_startup_plan(resolved_config(), Role.NODE_ONLY, node, FakeStore())
        assert plan.master_config is None
        assert plan.kube_master_config is None
        assert plan.node_config.volume_dir == "openshift.local.volumes"


def mocked_plan(role=Role.ALL_IN_ONE, kube=True, node=True):
    parent = MagicMock()
    plan = StartupPlan(
        role=role,
        selection=ALL,
        config=resolved_config(),
        master_config=parent.master,
        kube_master_config=parent.kube if kube else None,
        node_config=parent.node if node else None,
    )
    return parent, plan


def call_names(parent):
    return [c[0] for c in parent.mock_calls if c[0]]


class TestLaunch:
    def test_all_in_one_order(self):
        parent, plan = mocked_plan()
        launch(plan, docker=parent.docker, recorder=parent.recorder)
        names = call_names(parent)

        def before(a, b):
            assert names.index(a) < names.index(b), f"{a} should start before {b}"

        before("master.build_clients", "master.ensure_cors_allowed_origins")
        before("master.ensure_cors_allowed_origins", "kube.ensure_portal_net")
        before("kube.ensure_portal_net", "master.run_api")
        before("master.run_api", "kube.run_scheduler")
        before("kube.run_minion_controller", "recorder")
        before("recorder", "master.run_asset_server")
        before("master.run_asset_server", "master.run_build_controller")
        before("master.run_deployment_image_change_trigger_controller", "node.ensure_volume_dir")
        before("node.ensure_volume_dir", "node.ensure_docker")
        before("node.ensure_docker", "node.run_proxy")
        before("node.run_proxy", "node.run_agent")

        parent.master.run_api.assert_called_once_with(parent.kube)
        parent.node.ensure_docker.assert_called_once_with(parent.docker)
        parent.master.ensure_cors_allowed_origins.assert_called_once_with(
            ["console.example.com", "10.0.0.5:8444", "localhost", "127.0.0.1"]
        )

    def test_master_with_external_kube(self):
        parent, plan = mocked_plan(role=Role.MASTER_ONLY, kube=False, node=False)
        launch(plan, docker=parent.docker, recorder=parent.recorder)
        names = call_names(parent)

        parent.master.run_api.assert_called_once_with()
        assert not any(n.startswith("kube.") or n.startswith("node.") for n in names)
        assert names.count("master.run_build_controller") == 1

    def test_failure_stops_the_sequence(self):
        parent, plan = mocked_plan()
        parent.master.run_api.side_effect = OSError("address already in use")

        with pytest.raises(DependencyStartFailed) as exc:
            launch(plan, docker=parent.docker, recorder=parent.recorder)

        assert exc.value.component == "master API"
        assert "address already in use" in str(exc.value)
        parent.kube.run_scheduler.assert_not_called()
        parent.node.run_agent.assert_not_called()


def test_start_waits_for_shutdown(no_embedded_store):
    stages = Stages()
    shutdown = threading.Event()
    shutdown.set()
    launched = []

    plan = start(Configuration(hostname="host1"), [], shutdown, launcher=launched.append, **stages.kwargs())

    assert launched == [plan]
    assert plan.role is Role.ALL_IN_ONE
