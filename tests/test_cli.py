import ipaddress

import pytest

from shared.errors import AddressDiscoveryFailed
from startup import cli


@pytest.fixture(autouse=True)
def quiet_process(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "install_signal_handlers", lambda shutdown: None)


def parse(*argv):
    return cli.build_parser().parse_args(list(argv))


def test_defaults():
    ns = parse()
    config = cli.config_from_args(parse("--hostname", "host1"))

    assert ns.role == []
    assert config.master_addr.url == "https://localhost:8443"
    assert config.master_addr.provided is False
    assert config.listen_addr.url == "https://0.0.0.0:8443"
    assert config.etcd_addr.url == "http://0.0.0.0:4001"
    assert config.kubernetes_addr.is_set is False
    assert config.portal_net == ipaddress.ip_network("172.30.17.0/24")
    assert config.node_list == ("127.0.0.1",)
    assert config.hostname == "host1"


def test_flags():
    ns = parse(
        "master",
        "--master", "203.0.113.9:9443",
        "--etcd", "http://store:2379",
        "--nodes", "n1,n2",
        "--cors-allowed-origins", "a.example.com,b.example.com",
        "--require-authentication",
        "--hostname", "host1",
    )
    config = cli.config_from_args(ns)

    assert ns.role == ["master"]
    assert config.master_addr.provided and config.master_addr.port == 9443
    assert config.etcd_addr.url == "http://store:2379"
    assert config.node_list == ("n1", "n2")
    assert config.cors_allowed_origins == ("a.example.com", "b.example.com")
    assert config.require_authentication is True


def test_invalid_flag_value_exits():
    with pytest.raises(SystemExit):
        parse("--etcd", "http://store:2379/prefix")


def test_hostname_defaults_to_system(monkeypatch):
    monkeypatch.setattr(cli, "default_hostname", lambda: "box.example.com")
    assert cli.config_from_args(parse()).hostname == "box.example.com"


def test_too_many_roles_exit_code():
    assert cli.main(["master", "node", "--hostname", "host1"]) == 2


def test_unknown_role_exit_code():
    assert cli.main(["store", "--hostname", "host1"]) == 2


def test_bootstrap_failure_exit_code(monkeypatch):
    def failing_start(config, args, shutdown):
        raise AddressDiscoveryFailed("Unable to find a public address, pass --master")

    monkeypatch.setattr(cli, "start", failing_start)
    assert cli.main(["master", "--hostname", "host1"]) == 1


def test_clean_shutdown_exit_code(monkeypatch):
    seen = []

    def fake_start(config, args, shutdown):
        seen.append((config.hostname, args))

    monkeypatch.setattr(cli, "start", fake_start)
    assert cli.main(["node", "--hostname", "host1"]) == 0
    assert seen == [("host1", ["node"])]


def test_log_level_names():
    assert parse("--log-level", "debug").log_level == 10
    assert parse().log_level == 20


def test_unknown_log_level_is_usage_error(capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--log-level", "bogus"])
    assert exc.value.code == 2
    assert "Unknown log level: bogus" in capsys.readouterr().err
