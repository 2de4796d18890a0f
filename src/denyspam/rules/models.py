"""Rule data models — the two kinds of scoring rule."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from denyspam.hosts.models import HostSnapshot

Check = Callable[[HostSnapshot, str], bool]


class Rule(Protocol):
    """A scoring rule: when it matches, ``points`` are added to the host."""

    points: int

    def evaluate(self, host: HostSnapshot, message: str) -> bool:
        """Return True if the rule matches this message from this host."""
        ...

    @property
    def label(self) -> str:
        ...


@dataclass(frozen=True)
class PatternRule:
    """Matches a regular expression anywhere in the log message."""

    points: int
    pattern: str
    ignore_case: bool = False
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        flags = re.IGNORECASE if self.ignore_case else 0
        object.__setattr__(self, "_regex", re.compile(self.pattern, flags))

    @property
    def label(self) -> str:
        return f"/{self.pattern}/"

    def evaluate(self, host: HostSnapshot, message: str) -> bool:
        return self._regex.search(message) is not None


@dataclass(frozen=True)
class PredicateRule:
    """Delegates to an arbitrary callable taking (host, message)."""

    points: int
    check: Check
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or getattr(self.check, "__name__", repr(self.check))

    def evaluate(self, host: HostSnapshot, message: str) -> bool:
        return bool(self.check(host, message))


@dataclass(frozen=True)
class PredicateSpec:
    """A predicate rule as written in the config, before it is resolved.

    ``ref`` is either ``rbl:<zone>`` or ``package.module:function``.
    """

    points: int
    ref: str
