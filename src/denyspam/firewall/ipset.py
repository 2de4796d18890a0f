"""ipset backend for Linux — maintains a hash:net set.

The set has to exist and be referenced by an iptables/nftables rule::

    ipset create denyspam hash:net
    iptables -I INPUT -p tcp --dport 25 -m set --match-set denyspam src -j DROP

IPv6 addresses and networks go to an optional second set, ``<set>6``,
created with ``family inet6``. Without it IPv6 entries are skipped.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Sequence

from denyspam.firewall.base import CommandFirewall

logger = logging.getLogger(__name__)


class IpsetFirewall(CommandFirewall):
    """Adds and removes addresses in an ipset via ``ipset restore``."""

    name = "ipset"

    def __init__(self, set_name: str = "denyspam", ipset: str = "ipset") -> None:
        self._set = set_name
        self._set6 = f"{set_name}6"
        self._ipset = ipset
        self._has_set6: bool | None = None

    def add(self, addresses: Sequence[str]) -> bool:
        return self._restore("add", addresses)

    def remove(self, addresses: Sequence[str]) -> bool:
        return self._restore("del", addresses)

    def flush(self) -> bool:
        ok = self._run([self._ipset, "flush", self._set])
        if self._ipv6_enabled():
            self._run([self._ipset, "flush", self._set6])
        return ok

    def _restore(self, op: str, addresses: Sequence[str]) -> bool:
        ipv4 = [a for a in addresses if not _is_ipv6(a)]
        ipv6 = [a for a in addresses if _is_ipv6(a)]
        ok = True
        if ipv6 and not self._ipv6_enabled():
            logger.error(
                "ipset %s does not exist; cannot %s %s",
                self._set6,
                op,
                " ".join(ipv6),
            )
            ok = False
            ipv6 = []

        lines = [f"{op} {self._set} {a}" for a in ipv4]
        lines += [f"{op} {self._set6} {a}" for a in ipv6]
        if not lines:
            return ok
        return self._run(
            [self._ipset, "-exist", "restore"], stdin="\n".join(lines) + "\n"
        ) and ok

    def _ipv6_enabled(self) -> bool:
        """Whether ``<set>6`` exists. Checked once, on first need."""
        if self._has_set6 is None:
            names = self._output([self._ipset, "list", "-n"])
            if names is None:
                return False
            self._has_set6 = self._set6 in names.split()
            if not self._has_set6:
                logger.info("ipset %s not found; IPv6 blocking disabled", self._set6)
        return self._has_set6


def _is_ipv6(address: str) -> bool:
    try:
        return ipaddress.ip_network(address, strict=False).version == 6
    except ValueError:
        return False
