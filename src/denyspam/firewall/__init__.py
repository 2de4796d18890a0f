"""Firewall backends implementing the add/remove/flush contract."""

from __future__ import annotations

import platform

from denyspam.firewall.base import Firewall
from denyspam.firewall.ipset import IpsetFirewall
from denyspam.firewall.log import LogFirewall
from denyspam.firewall.pf import PfTableFirewall

BACKENDS = ("pf", "ipset", "log")


def default_backend() -> str:
    """ipset on Linux, pf everywhere else (the BSDs and macOS)."""
    return "ipset" if platform.system() == "Linux" else "pf"


def create_firewall(
    backend: str = "",
    table: str = "denyspam",
    command: str = "",
) -> Firewall:
    """Build the firewall backend named by the configuration."""
    backend = backend or default_backend()
    if backend == "pf":
        return PfTableFirewall(table=table, pfctl=command or "/sbin/pfctl")
    if backend == "ipset":
        return IpsetFirewall(set_name=table, ipset=command or "ipset")
    if backend == "log":
        return LogFirewall()
    raise ValueError(
        f"Unknown firewall backend '{backend}' "
        f"(expected one of {', '.join(BACKENDS)})"
    )


__all__ = [
    "BACKENDS",
    "Firewall",
    "IpsetFirewall",
    "LogFirewall",
    "PfTableFirewall",
    "create_firewall",
    "default_backend",
]
