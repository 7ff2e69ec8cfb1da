"""
Host network helpers: routable address discovery and hostname lookup.
"""

import ipaddress
import logging
import socket
import subprocess

import psutil

logger = logging.getLogger(__name__)

DEFAULT_HOSTNAME = "localhost"


def default_local_ip4() -> str:
    """
    Return the first IPv4 address of an interface that is up and not loopback.

    Interfaces are visited in the order the host reports them.

    Raises:
        LookupError: If no such address exists
    """
    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        iface = stats.get(name)
        if iface is None or not iface.isup:
            continue
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            ip = ipaddress.ip_address(addr.address)
            if ip.is_loopback or ip.is_unspecified:
                continue
            return str(ip)
    raise LookupError("no valid IPv4 address for interface with flags up and not loopback")


def default_hostname() -> str:
    """
    Return the fully qualified hostname of this system.

    ``hostname -f`` is used instead of ``socket.gethostname()`` because it
    yields the FQDN. Falls back to ``localhost`` with a warning.
    """
    try:
        fqdn = subprocess.check_output(["hostname", "-f"], text=True, timeout=5).strip()
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning(f"Unable to lookup hostname, using {DEFAULT_HOSTNAME!r}: {e}")
        return DEFAULT_HOSTNAME
    if not fqdn:
        logger.warning(f"Unable to lookup hostname, using {DEFAULT_HOSTNAME!r}: empty result")
        return DEFAULT_HOSTNAME
    return fqdn
