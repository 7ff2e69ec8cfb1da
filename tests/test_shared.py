import socket
import subprocess
from types import SimpleNamespace

import pytest

from master.events import EventRecorder
from shared import netutil
from shared.clientconfig import ClientConfig
from shared.errors import BootstrapError, DependencyStartFailed, InvalidArguments, StoreUnreachable
from shared.logging_config import parse_level


def iface(address, family=socket.AF_INET):
    return SimpleNamespace(family=family, address=address)


def fake_interfaces(monkeypatch, addrs, up=None):
    up = up or {name: True for name in addrs}
    monkeypatch.setattr(netutil.psutil, "net_if_addrs", lambda: addrs)
    monkeypatch.setattr(netutil.psutil, "net_if_stats", lambda: {n: SimpleNamespace(isup=u) for n, u in up.items()})


class TestDefaultLocalIP4:
    def test_skips_loopback_down_and_ipv6(self, monkeypatch):
        fake_interfaces(
            monkeypatch,
            {
                "lo": [iface("127.0.0.1")],
                "eth0": [iface("10.9.9.9")],
                "eth1": [iface("fe80::1", socket.AF_INET6), iface("10.0.0.5")],
            },
            up={"lo": True, "eth0": False, "eth1": True},
        )
        assert netutil.default_local_ip4() == "10.0.0.5"

    def test_no_address(self, monkeypatch):
        fake_interfaces(monkeypatch, {"lo": [iface("127.0.0.1")]})
        with pytest.raises(LookupError):
            netutil.default_local_ip4()


def test_hostname_fallback(monkeypatch):
    def broken(*args, **kwargs):
        raise subprocess.CalledProcessError(1, "hostname")

    monkeypatch.setattr(netutil.subprocess, "check_output", broken)
    assert netutil.default_hostname() == "localhost"

    monkeypatch.setattr(netutil.subprocess, "check_output", lambda *a, **k: "box.example.com\n")
    assert netutil.default_hostname() == "box.example.com"


def test_client_config_session():
    client = ClientConfig(host="https://10.0.0.5:8443/", cert_file="c.crt", key_file="c.key", ca_file="root.crt")
    session = client.build_session(SimpleNamespace(cert=None, verify=True))

    assert client.url("/osapi/v1beta1") == "https://10.0.0.5:8443/osapi/v1beta1"
    assert session.cert == ("c.crt", "c.key")
    assert session.verify == "root.crt"
    assert not ClientConfig(host="http://x").has_identity


def test_error_exit_codes():
    assert InvalidArguments("bad").exit_code == 2
    assert StoreUnreachable("down").exit_code == 1
    err = DependencyStartFailed("scheduler", OSError("boom"))
    assert isinstance(err, BootstrapError)
    assert str(err) == "Unable to start scheduler: boom"


def test_parse_level():
    assert parse_level("debug") == 10
    assert parse_level(30) == 30
    with pytest.raises(ValueError):
        parse_level("loud")


def test_event_recorder_posts_events():
    posted = []

    class Session:
        cert = None
        verify = True

        def post(self, url, json=None, timeout=None):
            posted.append((url, json))
            return SimpleNamespace(status_code=201)

    recorder = EventRecorder(ClientConfig(host="http://10.0.0.5:8443"), "master", session=Session()).start()
    recorder.record("Starting", "master started")
    recorder.stop()

    assert len(posted) == 1
    url, event = posted[0]
    assert url == "http://10.0.0.5:8443/api/v1beta1/events"
    assert event["involvedObject"] == {"kind": "Component", "name": "master"}
    assert event["source"] == {"component": "master"}
