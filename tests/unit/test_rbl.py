"""Tests for the TTL lookup cache and RBL checker."""

from __future__ import annotations

import socket
from unittest.mock import MagicMock

import pytest

from denyspam.hosts.models import HostSnapshot
from denyspam.rbl import DEFAULT_TTL, LookupResult, RblChecker, TtlCache, rbl_query_name


class TestTtlCache:
    def test_hit_before_expiry_and_purge_after(self, clock):
        check = MagicMock(return_value=LookupResult(listed=True))
        cache = TtlCache(check, ttl=DEFAULT_TTL, clock=clock)

        assert cache.lookup("k") is True
        clock.advance(DEFAULT_TTL - 1)
        assert cache.lookup("k") is True
        check.assert_called_once_with("k")

        assert cache.evict_expired() == 0
        clock.advance(1)
        assert cache.evict_expired() == 1
        assert "k" not in cache

    def test_expired_entry_is_not_returned(self, clock):
        check = MagicMock(
            side_effect=[LookupResult(listed=True), LookupResult(listed=False)]
        )
        cache = TtlCache(check, ttl=60, clock=clock)
        assert cache.lookup("k") is True
        clock.advance(60)
        assert cache.lookup("k") is False
        assert check.call_count == 2

    def test_failed_check_caches_false(self, clock):
        check = MagicMock(
            return_value=LookupResult(listed=True, error=OSError("timeout"))
        )
        cache = TtlCache(check, clock=clock)
        assert cache.lookup("k") is False
        assert cache.lookup("k") is False
        check.assert_called_once()
        assert len(cache) == 1


def test_query_name_ipv4():
    name = rbl_query_name("192.0.2.1", "zen.spamhaus.org")
    assert name == "1.2.0.192.zen.spamhaus.org"


def test_query_name_ipv6():
    name = rbl_query_name("2001:db8::1", "zen.spamhaus.org.")
    assert name.startswith("1.0.0.0.")
    assert name.endswith(".8.b.d.0.1.0.0.2.zen.spamhaus.org")


def test_query_name_rejects_garbage():
    with pytest.raises(ValueError):
        rbl_query_name("not-an-ip", "zen.spamhaus.org")


class TestRblChecker:
    def test_listed(self, clock):
        resolve = MagicMock(return_value="127.0.0.2")
        checker = RblChecker(resolve=resolve, clock=clock)
        assert checker.listed("192.0.2.1", "bl.example.org") is True
        assert checker.listed("192.0.2.1", "bl.example.org") is True
        resolve.assert_called_once_with("1.2.0.192.bl.example.org")

    def test_nxdomain_is_not_listed(self, clock):
        resolve = MagicMock(
            side_effect=socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        )
        checker = RblChecker(resolve=resolve, clock=clock)
        assert checker.listed("192.0.2.1", "bl.example.org") is False
        assert len(checker.cache) == 1

    def test_resolver_failure_is_not_listed(self, clock):
        resolve = MagicMock(side_effect=OSError("network unreachable"))
        checker = RblChecker(resolve=resolve, clock=clock)
        assert checker.listed("192.0.2.1", "bl.example.org") is False

    def test_non_ip_skipped(self, clock):
        resolve = MagicMock()
        checker = RblChecker(resolve=resolve, clock=clock)
        assert checker.listed("mail.example.com", "bl.example.org") is False
        resolve.assert_not_called()

    def test_predicate(self, clock):
        resolve = MagicMock(return_value="127.0.0.2")
        checker = RblChecker(resolve=resolve, clock=clock)
        check = checker.predicate("bl.example.org")
        host = HostSnapshot(address="192.0.2.1", score=0)
        assert check(host, "any message") is True
        assert check.__name__ == "rbl:bl.example.org"
