"""Packet Filter backend — maintains a pf table with pfctl.

The ruleset is expected to reference the table, for example::

    table <denyspam> persist
    block in quick on egress proto tcp from <denyspam> to any port smtp
"""

from __future__ import annotations

from collections.abc import Sequence

from denyspam.firewall.base import CommandFirewall


class PfTableFirewall(CommandFirewall):
    """Adds and removes addresses in a pf table."""

    name = "pfctl"

    def __init__(self, table: str = "denyspam", pfctl: str = "/sbin/pfctl") -> None:
        self._table = table
        self._pfctl = pfctl

    def add(self, addresses: Sequence[str]) -> bool:
        if not addresses:
            return True
        return self._run(self._table_cmd("add", *addresses))

    def remove(self, addresses: Sequence[str]) -> bool:
        if not addresses:
            return True
        return self._run(self._table_cmd("delete", *addresses))

    def flush(self) -> bool:
        return self._run(self._table_cmd("flush"))

    def _table_cmd(self, op: str, *addresses: str) -> list[str]:
        return [self._pfctl, "-q", "-t", self._table, "-T", op, *addresses]
