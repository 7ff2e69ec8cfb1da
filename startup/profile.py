from __future__ import annotations

from dataclasses import dataclass

from shared.flagtypes import Addr
from startup.config import Configuration
from startup.roles import Role


@dataclass
class StartupProfile:
    role: str
    host: str
    port: int


def _require_valid_port(port: int, field_name: str = "port") -> None:
    if int(port) < 1 or int(port) > 65535:
        raise ValueError(f"{field_name} must be in range 1..65535")


def _require_non_empty_host(host: str, field_name: str = "host") -> None:
    if not str(host or "").strip():
        raise ValueError(f"{field_name} is required")


def _require_resolved(addr: Addr, field_name: str) -> None:
    if not addr.scheme:
        raise ValueError(f"{field_name} has no scheme")
    _require_non_empty_host(addr.host, f"{field_name} host")
    _require_valid_port(addr.port, f"{field_name} port")


def asset_port(config: Configuration) -> int:
    """The asset listener sits one port above the API listener."""
    return int(config.listen_addr.port) + 1


def validate_master_profile(profile: StartupProfile, config: Configuration) -> None:
    _require_non_empty_host(profile.host)
    _require_valid_port(profile.port)
    _require_valid_port(asset_port(config), "asset port")
    if asset_port(config) == int(config.etcd_addr.port) and config.etcd_addr.host in (config.master_addr.host, "0.0.0.0"):
        raise ValueError(
            f"Asset listener port {asset_port(config)} conflicts with store port {config.etcd_addr.port}"
        )
    if int(profile.port) == int(config.etcd_addr.port) and config.etcd_addr.host in (config.master_addr.host, "0.0.0.0"):
        raise ValueError(f"Master port {profile.port} conflicts with store port {config.etcd_addr.port}")


def validate_node_profile(profile: StartupProfile, config: Configuration) -> None:
    _require_non_empty_host(profile.host)
    if not str(config.volume_dir or "").strip():
        raise ValueError("volume_dir is required for node")


def validate_resolved(config: Configuration, role: Role) -> None:
    """
    Check that negotiation left every address concrete.

    Raises:
        ValueError: On a missing scheme/host/port or a port collision
    """
    _require_resolved(config.master_addr, "master address")
    _require_resolved(config.etcd_addr, "store address")
    _require_resolved(config.kubernetes_addr, "kubernetes address")

    if role.starts_master:
        validate_master_profile(
            StartupProfile(role="MASTER", host=config.listen_addr.host, port=config.listen_addr.port),
            config,
        )
    if role.starts_node:
        validate_node_profile(StartupProfile(role="NODE", host=config.hostname, port=0), config)
