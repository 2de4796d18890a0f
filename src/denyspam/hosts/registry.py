"""Host registry — owns per-host state and the ordered block set.

All reads and writes of the host map and block set go through a single
re-entrant lock. Firewall calls are made only after the lock has been
released; the in-memory record is authoritative and a failed firewall
call is corrected by the next sweep or reconcile.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from denyspam.firewall.base import Firewall
from denyspam.hosts.models import Host, HostSnapshot, clamp_score, sort_hosts

logger = logging.getLogger(__name__)


class HostRegistry:
    """Thread-safe map of address → Host plus the blocking state machine.

    Host lifecycle: Fresh (created at ``default_score``) → Scored →
    Blocked (``blocked_until`` set) → Scored again once the block expires.
    """

    def __init__(
        self,
        firewall: Firewall,
        block_minutes: int = 30,
        default_score: int = -10,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._firewall = firewall
        self._block_minutes = block_minutes
        self._default_score = clamp_score(default_score)
        self._clock = clock
        self._hosts: dict[str, Host] = {}
        self._blocked: list[str] = []  # sorted by blocked_until ascending
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hosts)

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return address in self._hosts

    # -- host access -------------------------------------------------------

    def get(self, address: str) -> HostSnapshot | None:
        with self._lock:
            host = self._hosts.get(address)
            return host.snapshot() if host is not None else None

    def touch(self, address: str) -> HostSnapshot:
        """Return the host for address, creating it on first sighting."""
        with self._lock:
            return self._get_or_create(address).snapshot()

    def record_seen(self, address: str) -> HostSnapshot:
        """Count a new connection from address."""
        with self._lock:
            host = self._get_or_create(address)
            host.seen(self._clock())
            return host.snapshot()

    def hosts(self) -> list[Host]:
        """Copies of every host, for persistence."""
        with self._lock:
            return [Host(**h.to_dict()) for h in self._hosts.values()]

    def list_hosts(
        self,
        sort_by: str = "address",
        descending: bool = False,
        address: str | None = None,
    ) -> list[HostSnapshot]:
        """Read-only, sorted view of the registry, optionally one address."""
        with self._lock:
            if address is not None:
                host = self._hosts.get(address)
                snapshots = [host.snapshot()] if host is not None else []
            else:
                snapshots = [h.snapshot() for h in self._hosts.values()]
        return sort_hosts(snapshots, sort_by=sort_by, descending=descending)

    def blocked_addresses(self) -> list[str]:
        """The block set, soonest expiry first."""
        with self._lock:
            return list(self._blocked)

    # -- scoring and blocking ----------------------------------------------

    def apply_score(self, address: str, delta: int) -> HostSnapshot:
        """Add delta to the host's score, clamp it, and block spammers.

        A score dropping to zero or below never unblocks a host; blocks
        only end when they expire.
        """
        with self._lock:
            host = self._get_or_create(address)
            host.score = clamp_score(host.score + delta)
            needs_add = self._block(host) if host.spammer else False
            snapshot = host.snapshot()

        if needs_add:
            self._firewall_add([address], snapshot.blocked_until)
        return snapshot

    def block(self, address: str) -> HostSnapshot:
        """Block address for ``block_minutes * 60 * score`` seconds from now.

        The firewall is told only on the transition into Blocked; blocking
        an already-blocked host just recomputes ``blocked_until``.
        """
        with self._lock:
            host = self._get_or_create(address)
            needs_add = self._block(host)
            snapshot = host.snapshot()

        if needs_add:
            self._firewall_add([address], snapshot.blocked_until)
        return snapshot

    def sweep(self) -> list[str]:
        """Unblock every host whose block has expired. Returns their addresses."""
        expired: list[str] = []
        with self._lock:
            now = self._clock()
            while self._blocked:
                host = self._hosts.get(self._blocked[0])
                if host is not None and host.blocked_until is not None:
                    if host.blocked_until > now:
                        break
                    host.clear_block()
                    expired.append(host.address)
                self._blocked.pop(0)

        if expired:
            if self._firewall.remove(expired):
                for address in expired:
                    logger.info("Unblocked %s", address)
            else:
                logger.error("Unable to unblock %s", " ".join(expired))
        return expired

    def reconcile(self) -> list[str]:
        """Bring the firewall in line with the loaded host data.

        Blocks that expired while the daemon was down are cleared silently;
        the rest are re-added to the firewall in one call.
        """
        with self._lock:
            now = self._clock()
            active: list[str] = []
            for host in self._hosts.values():
                if not host.blocked:
                    continue
                if host.blocked_until is not None and host.blocked_until <= now:
                    host.clear_block()
                else:
                    active.append(host.address)
            self._blocked = active
            self._sort_blocklist()
            active = list(self._blocked)

        if active:
            if self._firewall.add(active):
                logger.info("Restored %d block(s) from host data", len(active))
            else:
                logger.error("Unable to restore %d block(s)", len(active))
        return active

    # -- maintenance -------------------------------------------------------

    def load(self, hosts: Iterable[Host]) -> None:
        """Replace the registry's contents with previously saved hosts."""
        with self._lock:
            self._hosts = {h.address: h for h in hosts}
            self._blocked = [a for a, h in self._hosts.items() if h.blocked]
            self._sort_blocklist()

    def evict_stale(self, retention: float) -> int:
        """Forget unblocked hosts not seen within retention seconds."""
        with self._lock:
            now = self._clock()
            stale = [a for a, h in self._hosts.items() if h.is_stale(now, retention)]
            for address in stale:
                del self._hosts[address]
        if stale:
            logger.debug("Forgot %d stale host(s)", len(stale))
        return len(stale)

    # -- internals (lock held) ---------------------------------------------

    def _get_or_create(self, address: str) -> Host:
        host = self._hosts.get(address)
        if host is None:
            host = Host(address=address, score=self._default_score)
            self._hosts[address] = host
        return host

    def _block(self, host: Host) -> bool:
        now = self._clock()
        newly_blocked = not host.blocked
        if newly_blocked:
            host.blocked_since = now
        else:
            logger.debug("Extending block for %s", host.address)
        host.blocked_until = now + self._block_minutes * 60 * host.score
        self._blocked.append(host.address)
        self._sort_blocklist()
        return newly_blocked

    def _sort_blocklist(self) -> None:
        unique = {
            a for a in self._blocked if a in self._hosts and self._hosts[a].blocked
        }
        self._blocked = sorted(unique, key=lambda a: self._hosts[a].blocked_until)

    def _firewall_add(self, addresses: list[str], until: float | None) -> None:
        if self._firewall.add(addresses):
            logger.info(
                "Blocking %s until %s",
                " ".join(addresses),
                time.strftime("%b %d %H:%M:%S", time.localtime(until or 0)),
            )
        else:
            logger.error("Unable to block %s", " ".join(addresses))
