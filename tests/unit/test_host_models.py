"""Tests for Host records, clamping and sorting."""

from __future__ import annotations

import dataclasses

import pytest

from denyspam.hosts.models import (
    SCORE_MAX,
    SCORE_MIN,
    Host,
    HostSnapshot,
    clamp_score,
    sort_hosts,
)


def test_clamp_score_bounds():
    assert clamp_score(70000) == SCORE_MAX
    assert clamp_score(-70000) == SCORE_MIN
    assert clamp_score(42) == 42


def test_blocked_follows_blocked_until():
    host = Host(address="192.0.2.1")
    assert not host.blocked
    host.blocked_until = 100.0
    assert host.blocked
    host.clear_block()
    assert not host.blocked
    assert host.blocked_since is None


def test_seen_updates_counters():
    host = Host(address="192.0.2.1")
    host.seen(now=50.0)
    host.seen(now=60.0)
    assert host.times_seen == 2
    assert host.last_seen == 60.0


def test_is_stale():
    host = Host(address="192.0.2.1", last_seen=0.0)
    assert host.is_stale(now=1000.0, retention=500.0)
    assert not host.is_stale(now=400.0, retention=500.0)
    host.blocked_until = 2000.0
    assert not host.is_stale(now=1000.0, retention=500.0)


def test_snapshot_is_immutable():
    snap = Host(address="192.0.2.1", score=3).snapshot()
    assert isinstance(snap, HostSnapshot)
    with pytest.raises(dataclasses.FrozenInstanceError):
        snap.score = 10  # type: ignore[misc]


def test_from_dict_clamps_and_normalizes_block_fields():
    host = Host.from_dict(
        {"address": "192.0.2.9", "score": 999999, "blocked_since": 5.0}
    )
    assert host.score == SCORE_MAX
    assert host.blocked_since is None
    assert not host.blocked


class TestSortHosts:
    def _hosts(self) -> list[Host]:
        return [
            Host(address="192.0.2.10", score=5, times_seen=1, last_seen=30.0),
            Host(address="192.0.2.9", score=-1, times_seen=7, blocked_until=500.0),
            Host(address="10.0.0.1", score=40, times_seen=3, last_seen=10.0,
                 blocked_until=100.0),
        ]

    def test_by_address_is_numeric(self):
        result = [h.address for h in sort_hosts(self._hosts())]
        assert result == ["10.0.0.1", "192.0.2.9", "192.0.2.10"]

    def test_by_score_descending(self):
        result = [h.score for h in sort_hosts(self._hosts(), "score", descending=True)]
        assert result == [40, 5, -1]

    def test_by_times_seen(self):
        result = [h.times_seen for h in sort_hosts(self._hosts(), "times_seen")]
        assert result == [1, 3, 7]

    def test_unblocked_hosts_sort_last(self):
        result = [h.address for h in sort_hosts(self._hosts(), "blocked_until")]
        assert result == ["10.0.0.1", "192.0.2.9", "192.0.2.10"]
        result = [
            h.address
            for h in sort_hosts(self._hosts(), "blocked_until", descending=True)
        ]
        assert result == ["192.0.2.9", "10.0.0.1", "192.0.2.10"]

    def test_never_seen_sorts_last(self):
        result = [h.address for h in sort_hosts(self._hosts(), "last_seen")]
        assert result == ["10.0.0.1", "192.0.2.10", "192.0.2.9"]

    def test_unknown_column(self):
        with pytest.raises(ValueError, match="Unknown sort column"):
            sort_hosts(self._hosts(), "bogus")
