import argparse
import ipaddress

import pytest

from shared.flagtypes import Addr, addr_flag, ip_net, join_host_port, string_list

MASTER = Addr(value="localhost:8443", default_scheme="https", default_port=8443, allow_prefix=True)
STORE = Addr(value="0.0.0.0:4001", default_scheme="http", default_port=4001)


class TestAddr:
    def test_default_is_parsed_but_not_provided(self):
        addr = MASTER.default()
        assert addr.provided is False
        assert addr.scheme == "https"
        assert addr.host == "localhost"
        assert addr.port == 8443
        assert addr.url == "https://localhost:8443"

    def test_host_only_uses_default_scheme_and_port(self):
        addr = STORE.set("10.0.0.5")
        assert addr.provided is True
        assert addr.url == "http://10.0.0.5:4001"

    def test_host_port(self):
        addr = MASTER.set("203.0.113.9:9443")
        assert addr.url == "https://203.0.113.9:9443"
        assert addr.value == "203.0.113.9:9443"

    def test_url_overrides_scheme(self):
        addr = MASTER.set("http://master.example.com")
        assert addr.scheme == "http"
        assert addr.host == "master.example.com"
        assert addr.port == 8443

    def test_prefix_rejected_unless_allowed(self):
        with pytest.raises(ValueError, match="prefix"):
            STORE.set("http://10.0.0.5:4001/etcd")
        assert MASTER.set("https://10.0.0.5:8443/api").path == "/api"

    def test_ipv6(self):
        addr = STORE.set("[fd00::1]:4002")
        assert addr.host == "fd00::1"
        assert addr.port == 4002
        assert addr.url == "http://[fd00::1]:4002"
        assert STORE.set("fd00::1").port == 4001

    def test_missing_host(self):
        with pytest.raises(ValueError, match="host"):
            STORE.set("")

    def test_empty_default_stays_unset(self):
        addr = Addr(default_scheme="https", default_port=8443).default()
        assert addr.is_set is False
        assert addr.url == ""

    def test_frozen(self):
        with pytest.raises(AttributeError):
            MASTER.default().host = "other"


def test_addr_flag_reports_argparse_error():
    parse = addr_flag(STORE)
    assert parse("10.0.0.5").provided is True
    with pytest.raises(argparse.ArgumentTypeError):
        parse("http://10.0.0.5:4001/prefix")


def test_ip_net_and_string_list():
    assert ip_net("172.30.17.0/24") == ipaddress.ip_network("172.30.17.0/24")
    with pytest.raises(argparse.ArgumentTypeError):
        ip_net("not-a-cidr")
    assert string_list("a, b,,c") == ["a", "b", "c"]
    assert string_list("") == []


def test_join_host_port():
    assert join_host_port("10.0.0.5", 80) == "10.0.0.5:80"
    assert join_host_port("::1", 80) == "[::1]:80"
