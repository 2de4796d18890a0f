"""Host data models — per-address behavioral records and read-only snapshots."""

from __future__ import annotations

import ipaddress
import time
from collections.abc import Iterable
from dataclasses import asdict, dataclass

SCORE_MIN = -65536
SCORE_MAX = 65536

SORT_KEYS = ("address", "score", "times_seen", "last_seen", "blocked_until")


def clamp_score(score: int) -> int:
    """Clamp a score into [SCORE_MIN, SCORE_MAX]."""
    return max(SCORE_MIN, min(SCORE_MAX, score))


@dataclass(frozen=True)
class HostSnapshot:
    """Immutable copy of a Host, safe to hand to rules and reporting code."""

    address: str
    score: int
    times_seen: int = 0
    last_seen: float | None = None
    blocked_since: float | None = None
    blocked_until: float | None = None

    @property
    def blocked(self) -> bool:
        return self.blocked_until is not None

    @property
    def spammer(self) -> bool:
        return self.score > 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Host:
    """A remote mail server, keyed by IP address."""

    address: str
    score: int = 0
    times_seen: int = 0
    last_seen: float | None = None
    blocked_since: float | None = None
    blocked_until: float | None = None

    @property
    def blocked(self) -> bool:
        return self.blocked_until is not None

    @property
    def spammer(self) -> bool:
        """Whether the host currently looks like a spammer."""
        return self.score > 0

    def seen(self, now: float | None = None) -> None:
        """Bump times_seen and stamp last_seen."""
        self.last_seen = time.time() if now is None else now
        self.times_seen += 1

    def is_stale(self, now: float, retention: float) -> bool:
        """Unblocked and not seen within the retention window."""
        if self.blocked:
            return False
        return self.last_seen is None or now - self.last_seen > retention

    def clear_block(self) -> None:
        self.blocked_since = None
        self.blocked_until = None

    def snapshot(self) -> HostSnapshot:
        return HostSnapshot(
            address=self.address,
            score=self.score,
            times_seen=self.times_seen,
            last_seen=self.last_seen,
            blocked_since=self.blocked_since,
            blocked_until=self.blocked_until,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Host:
        """Rebuild a Host from its persisted form."""
        blocked_until = _opt_float(data.get("blocked_until"))
        return cls(
            address=str(data["address"]),
            score=clamp_score(int(data.get("score", 0))),
            times_seen=int(data.get("times_seen", 0)),
            last_seen=_opt_float(data.get("last_seen")),
            blocked_since=(
                _opt_float(data.get("blocked_since"))
                if blocked_until is not None
                else None
            ),
            blocked_until=blocked_until,
        )


def _opt_float(value: object) -> float | None:
    if value is None:
        return None
    return float(value)  # type: ignore[arg-type]


def _address_key(address: str) -> tuple[int, int, str]:
    try:
        addr = ipaddress.ip_address(address)
    except ValueError:
        return (9, 0, address)
    return (addr.version, int(addr), address)


def sort_hosts(
    hosts: Iterable[HostSnapshot | Host],
    sort_by: str = "address",
    descending: bool = False,
) -> list:
    """Sort hosts by one of SORT_KEYS.

    Unblocked hosts sort after blocked ones for ``blocked_until`` and
    never-seen hosts sort after seen ones for ``last_seen``, regardless of
    direction.
    """
    if sort_by not in SORT_KEYS:
        raise ValueError(
            f"Unknown sort column '{sort_by}' (expected one of {', '.join(SORT_KEYS)})"
        )

    items = list(hosts)
    if sort_by == "address":
        return sorted(items, key=lambda h: _address_key(h.address), reverse=descending)
    if sort_by in ("score", "times_seen"):
        return sorted(items, key=lambda h: getattr(h, sort_by), reverse=descending)

    present = [h for h in items if getattr(h, sort_by) is not None]
    missing = [h for h in items if getattr(h, sort_by) is None]
    present.sort(key=lambda h: getattr(h, sort_by), reverse=descending)
    missing.sort(key=lambda h: _address_key(h.address))
    return present + missing
