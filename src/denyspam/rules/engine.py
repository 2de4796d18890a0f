"""Rule engine — scores session messages and applies the result to hosts."""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from denyspam.hosts.models import HostSnapshot
from denyspam.hosts.registry import HostRegistry
from denyspam.rules.models import Rule
from denyspam.session.models import Session

logger = logging.getLogger(__name__)

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def parse_networks(values: Iterable[str]) -> tuple[Network, ...]:
    """Parse addresses or CIDR blocks. Raises ValueError on bad input."""
    return tuple(ipaddress.ip_network(v.strip(), strict=False) for v in values)


def in_networks(address: str, networks: Sequence[Network]) -> bool:
    try:
        addr = ipaddress.ip_address(address)
    except ValueError:
        return False
    return any(addr in net for net in networks)


class RuleEngine:
    """Applies pattern and predicate rules to buffered session messages.

    Rules are evaluated in configuration order. Predicates may perform
    network lookups, so the batch is scored against a snapshot of the host
    and the total is applied to the registry in one locked update.
    """

    def __init__(
        self,
        rules: Sequence[Rule],
        registry: HostRegistry,
        allow: Sequence[Network] = (),
        deny: Sequence[Network] = (),
    ) -> None:
        self._rules = tuple(rules)
        self._registry = registry
        self._allow = tuple(allow)
        self._deny = tuple(deny)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def is_exempt(self, address: str) -> bool:
        """Loopback, allow-listed and deny-listed addresses are never scored."""
        try:
            if ipaddress.ip_address(address).is_loopback:
                return True
        except ValueError:
            pass
        return in_networks(address, self._allow) or in_networks(address, self._deny)

    def score(self, host: HostSnapshot, message: str) -> int:
        """Return the points one message earns the host.

        A rule that raises is logged and skipped; the others still apply.
        """
        delta = 0
        for rule in self._rules:
            try:
                matched = rule.evaluate(host, message)
            except Exception as exc:
                logger.error("Rule error in %s: %s", rule.label, exc)
                continue
            if matched:
                logger.debug(
                    "%s matched %s (%+d): %s",
                    host.address,
                    rule.label,
                    rule.points,
                    message,
                )
                delta += rule.points
        return delta

    def score_session(self, session: Session) -> HostSnapshot | None:
        """Score and drain the session's buffer.

        Returns the updated host, or None when the session could not be
        attributed to a scorable host. Addressless sessions keep their
        buffer so a late-learned address still gets the whole history.
        """
        if session.address is None or not session.buffer:
            return None
        if self.is_exempt(session.address):
            session.buffer.clear()
            return None

        messages = session.drain()
        base = self._registry.touch(session.address)
        delta = 0
        for message in messages:
            delta += self.score(replace(base, score=base.score + delta), message)

        host = self._registry.apply_score(session.address, delta)
        if delta:
            logger.debug(
                "%s scored %+d over %d message(s), now %d",
                host.address,
                delta,
                len(messages),
                host.score,
            )
        return host
