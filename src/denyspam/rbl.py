"""Realtime blackhole list lookups with a six-hour result cache.

Lookups resolve ``<reversed address>.<zone>``: any A record means the
address is listed, NXDOMAIN means it is not. Resolver failures are
treated as "not listed" and cached all the same so that an unreachable
list provider is not queried for every log line.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
import time
from collections.abc import Callable
from typing import NamedTuple

from denyspam.hosts.models import HostSnapshot

logger = logging.getLogger(__name__)

# Cached results expire after six hours.
DEFAULT_TTL = 21600.0


class LookupResult(NamedTuple):
    """Outcome of an external existence check."""

    listed: bool
    error: Exception | None = None


class _Entry(NamedTuple):
    listed: bool
    expires: float


class TtlCache:
    """Caches boolean lookup results for a fixed TTL.

    Thread-safe: lookups come from the log pipeline, eviction from the
    maintenance loop. The external check runs outside the lock.
    """

    def __init__(
        self,
        check: Callable[[str], LookupResult],
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._check = check
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def lookup(self, key: str) -> bool:
        """Return the cached result for key, running the check on a miss."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expires > now:
                return entry.listed

        result = self._check(key)
        if result.error is not None:
            logger.debug("Lookup of %s failed: %s", key, result.error)
        listed = bool(result.listed) and result.error is None

        with self._lock:
            self._entries[key] = _Entry(listed=listed, expires=now + self._ttl)
        return listed

    def evict_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires <= now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Evicted %d expired RBL cache entries", len(expired))
        return len(expired)


def rbl_query_name(address: str, zone: str) -> str:
    """Build the DNS name to query for address in zone.

    IPv4 uses reversed octets, IPv6 reversed nibbles.
    """
    addr = ipaddress.ip_address(address)
    pointer = addr.reverse_pointer
    suffix = ".in-addr.arpa" if addr.version == 4 else ".ip6.arpa"
    return f"{pointer[: -len(suffix)]}.{zone.strip('.')}"


class RblChecker:
    """Looks up addresses in DNS blackhole lists through a TtlCache."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        resolve: Callable[[str], str] = socket.gethostbyname,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._resolve = resolve
        self.cache = TtlCache(self._query, ttl=ttl, clock=clock)

    def listed(self, address: str, zone: str) -> bool:
        """Whether address is listed in zone. Unparseable addresses never are."""
        try:
            name = rbl_query_name(address, zone)
        except ValueError:
            logger.debug("Not an IP address, skipping RBL lookup: %s", address)
            return False
        return self.cache.lookup(name)

    def predicate(self, zone: str) -> Callable[[HostSnapshot, str], bool]:
        """Return a rule check that is true when the host is listed in zone."""

        def check(host: HostSnapshot, message: str) -> bool:
            return self.listed(host.address, zone)

        check.__name__ = f"rbl:{zone}"
        return check

    def _query(self, name: str) -> LookupResult:
        try:
            self._resolve(name)
            return LookupResult(listed=True)
        except socket.gaierror as exc:
            if exc.errno in (socket.EAI_NONAME, getattr(socket, "EAI_NODATA", None)):
                return LookupResult(listed=False)
            return LookupResult(listed=False, error=exc)
        except (OSError, UnicodeError) as exc:
            return LookupResult(listed=False, error=exc)
