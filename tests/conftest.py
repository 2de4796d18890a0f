"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from denyspam.hosts.registry import HostRegistry
from denyspam.rules.engine import RuleEngine
from denyspam.rules.models import PatternRule
from denyspam.session.tracker import SessionTracker

T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def log_line(key: int | str, text: str, service: str = "postfix/smtpd") -> str:
    return f"Oct 19 10:00:00 mx {service}[{key}]: {text}\n"


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def line():
    """Factory for Postfix smtpd log lines."""
    return log_line


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def firewall() -> MagicMock:
    fw = MagicMock()
    fw.add.return_value = True
    fw.remove.return_value = True
    fw.flush.return_value = True
    return fw


@pytest.fixture
def registry(firewall: MagicMock, clock: FakeClock) -> HostRegistry:
    return HostRegistry(firewall, block_minutes=10, default_score=0, clock=clock)


@pytest.fixture
def simple_rules() -> list[PatternRule]:
    return [
        PatternRule(points=5, pattern=r"User unknown"),
        PatternRule(points=30, pattern=r"Relay access denied"),
        PatternRule(points=-3, pattern=r"client="),
    ]


@pytest.fixture
def engine(simple_rules: list[PatternRule], registry: HostRegistry) -> RuleEngine:
    return RuleEngine(simple_rules, registry)


@pytest.fixture
def tracker(
    registry: HostRegistry, engine: RuleEngine, clock: FakeClock
) -> SessionTracker:
    return SessionTracker(registry, engine, timeout=600, clock=clock)
