"""
Value types for command line flags.

An ``Addr`` remembers whether the operator supplied it or whether it still
holds its built-in default, because address defaulting branches on that
distinction rather than on the value itself.
"""

from __future__ import annotations

import argparse
import ipaddress
from dataclasses import dataclass, replace
from typing import Callable, List, Tuple
from urllib.parse import urlsplit


def join_host_port(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _split_host_port(netloc: str, default_port: int) -> Tuple[str, int]:
    try:
        ip = ipaddress.ip_address(netloc)
    except ValueError:
        ip = None
    if ip is not None and ip.version == 6:
        return netloc, default_port

    parsed = urlsplit(f"//{netloc}")
    host = parsed.hostname or ""
    port = parsed.port  # raises ValueError for out-of-range ports
    return host, port if port is not None else default_port


@dataclass(frozen=True)
class Addr:
    value: str = ""
    default_scheme: str = "tcp"
    default_port: int = 0
    allow_prefix: bool = False
    provided: bool = False
    scheme: str = ""
    host: str = ""
    port: int = 0
    path: str = ""

    def set(self, value: str) -> "Addr":
        """Parse ``value`` (host, host:port or URL) and mark it as provided."""
        value = str(value or "").strip()
        scheme = self.default_scheme
        path = ""
        netloc = value

        if "://" in value:
            parsed = urlsplit(value)
            scheme = parsed.scheme or self.default_scheme
            netloc = parsed.netloc
            path = parsed.path.rstrip("/")
            if path and not self.allow_prefix:
                raise ValueError(f"the provided URL {value!r} may not contain a prefix")

        if not netloc:
            raise ValueError(f"the provided address {value!r} must have a host")

        host, port = _split_host_port(netloc, self.default_port)
        if not host:
            raise ValueError(f"the provided address {value!r} must have a host")
        if port < 1 or port > 65535:
            raise ValueError(f"the provided address {value!r} must have a port in range 1..65535")

        return replace(
            self,
            value=join_host_port(host, port),
            provided=True,
            scheme=scheme,
            host=host,
            port=port,
            path=path,
        )

    def default(self) -> "Addr":
        """Parse the built-in value without marking it as operator supplied."""
        if not self.value:
            return self
        return replace(self.set(self.value), provided=False)

    @property
    def is_set(self) -> bool:
        return bool(self.host)

    @property
    def host_port(self) -> str:
        return join_host_port(self.host, self.port)

    @property
    def url(self) -> str:
        if not self.is_set:
            return ""
        return f"{self.scheme}://{self.host_port}{self.path}"

    def __str__(self) -> str:
        return self.url


def addr_flag(template: Addr) -> Callable[[str], Addr]:
    """Build an argparse ``type=`` converter that parses into ``template``."""
    def _parse(value: str) -> Addr:
        try:
            return template.set(value)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e))
    _parse.__name__ = "address"
    return _parse


def ip_net(value: str) -> ipaddress.IPv4Network | ipaddress.IPv6Network:
    try:
        return ipaddress.ip_network(str(value).strip(), strict=False)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def string_list(value: str) -> List[str]:
    """Comma delimited list; blank entries are dropped."""
    return [item.strip() for item in str(value or "").split(",") if item.strip()]
