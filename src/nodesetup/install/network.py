"""Local network discovery."""

from __future__ import annotations

import ipaddress
import re
from typing import Optional

from nodesetup.install.executor import CommandExecutor

__all__ = ["detect_primary_ipv4", "local_network_cidr"]

_INET_RE = re.compile(r"\binet (\d{1,3}(?:\.\d{1,3}){3})/\d+")


def detect_primary_ipv4(executor: CommandExecutor) -> Optional[str]:
    """First non-loopback IPv4 address reported by ``ip -4 addr show``."""
    result = executor.run(["ip", "-4", "-o", "addr", "show"], check=False, quiet=True)
    for address in _INET_RE.findall(result.stdout):
        if not ipaddress.ip_address(address).is_loopback:
            return address
    return None


def local_network_cidr(address: str, prefix: int = 24) -> str:
    """``192.168.1.23`` -> ``192.168.1.0/24``."""
    return str(ipaddress.ip_network(f"{address}/{prefix}", strict=False))
