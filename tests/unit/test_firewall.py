"""Tests for the firewall backends."""

from __future__ import annotations

import logging
import subprocess
from unittest.mock import MagicMock, call, patch

import pytest

from denyspam.firewall import (
    Firewall,
    IpsetFirewall,
    LogFirewall,
    PfTableFirewall,
    create_firewall,
    default_backend,
)

RUN = "denyspam.firewall.base.subprocess.run"


class TestPf:
    @patch(RUN)
    def test_add(self, mock_run: MagicMock):
        fw = PfTableFirewall(table="spam")
        assert fw.add(["192.0.2.1", "192.0.2.2"])
        mock_run.assert_called_once_with(
            ["/sbin/pfctl", "-q", "-t", "spam", "-T", "add", "192.0.2.1", "192.0.2.2"],
            input=None,
            check=True,
            capture_output=True,
            text=True,
            timeout=5,
        )

    @patch(RUN)
    def test_remove_and_flush(self, mock_run: MagicMock):
        fw = PfTableFirewall(pfctl="pfctl")
        fw.remove(["192.0.2.1"])
        fw.flush()
        argvs = [c.args[0] for c in mock_run.call_args_list]
        assert argvs == [
            ["pfctl", "-q", "-t", "denyspam", "-T", "delete", "192.0.2.1"],
            ["pfctl", "-q", "-t", "denyspam", "-T", "flush"],
        ]

    @patch(RUN)
    def test_empty_batch_is_a_no_op(self, mock_run: MagicMock):
        fw = PfTableFirewall()
        assert fw.add([])
        assert fw.remove([])
        mock_run.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [
            subprocess.CalledProcessError(
                1, ["pfctl"], stderr="pfctl: Table does not exist"
            ),
            FileNotFoundError("/sbin/pfctl"),
            subprocess.TimeoutExpired(["pfctl"], 5),
        ],
    )
    def test_failure_returns_false(self, error, caplog):
        with patch(RUN, side_effect=error), caplog.at_level(logging.ERROR):
            assert PfTableFirewall().add(["192.0.2.1"]) is False
        assert "command failed" in caplog.text


class TestIpset:
    @patch(RUN)
    def test_add_routes_ipv6_to_second_set(self, mock_run: MagicMock):
        mock_run.return_value.stdout = "spam\nspam6\n"
        fw = IpsetFirewall(set_name="spam")
        assert fw.add(["2001:db8::1", "192.0.2.1"])
        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["ipset", "list", "-n"],
            ["ipset", "-exist", "restore"],
        ]
        assert mock_run.call_args.kwargs["input"] == (
            "add spam 192.0.2.1\nadd spam6 2001:db8::1\n"
        )

    @patch(RUN)
    def test_networks_follow_their_family(self, mock_run: MagicMock):
        mock_run.return_value.stdout = "denyspam\ndenyspam6\n"
        assert IpsetFirewall().add(["2001:db8::/32", "203.0.113.0/24"])
        assert mock_run.call_args.kwargs["input"] == (
            "add denyspam 203.0.113.0/24\nadd denyspam6 2001:db8::/32\n"
        )

    @patch(RUN)
    def test_ipv6_skipped_without_second_set(self, mock_run: MagicMock, caplog):
        mock_run.return_value.stdout = "denyspam\n"
        fw = IpsetFirewall()
        with caplog.at_level(logging.ERROR):
            assert fw.add(["192.0.2.1", "2001:db8::1"]) is False
        assert mock_run.call_args.kwargs["input"] == "add denyspam 192.0.2.1\n"
        assert "denyspam6 does not exist" in caplog.text

    @patch(RUN)
    def test_second_set_is_looked_up_once(self, mock_run: MagicMock):
        mock_run.return_value.stdout = "denyspam\ndenyspam6\n"
        fw = IpsetFirewall()
        fw.add(["2001:db8::1"])
        fw.remove(["2001:db8::1"])
        fw.flush()
        lookups = [
            c for c in mock_run.call_args_list if c.args[0] == ["ipset", "list", "-n"]
        ]
        assert len(lookups) == 1

    @patch(RUN)
    def test_remove_ipv4_needs_no_lookup(self, mock_run: MagicMock):
        IpsetFirewall().remove(["192.0.2.1"])
        mock_run.assert_called_once()
        assert mock_run.call_args.kwargs["input"] == "del denyspam 192.0.2.1\n"

    @patch(RUN)
    def test_flush_clears_both_sets(self, mock_run: MagicMock):
        mock_run.return_value.stdout = "spam\nspam6\n"
        assert IpsetFirewall(set_name="spam", ipset="/usr/sbin/ipset").flush()
        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["/usr/sbin/ipset", "flush", "spam"],
            ["/usr/sbin/ipset", "list", "-n"],
            ["/usr/sbin/ipset", "flush", "spam6"],
        ]

    @patch(RUN)
    def test_flush_without_second_set(self, mock_run: MagicMock):
        mock_run.return_value.stdout = "spam\n"
        assert IpsetFirewall(set_name="spam").flush()
        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["ipset", "flush", "spam"],
            ["ipset", "list", "-n"],
        ]

    def test_flush_reports_ipv4_result(self):
        error = subprocess.CalledProcessError(1, ["ipset"], stderr="no such set")
        with patch(RUN, side_effect=error):
            assert IpsetFirewall().flush() is False



def test_log_firewall_records_blocks():
    fw = LogFirewall()
    assert fw.add(["192.0.2.1", "192.0.2.2"])
    assert fw.remove(["192.0.2.1"])
    assert fw.blocked == {"192.0.2.2"}
    assert fw.flush()
    assert fw.blocked == set()


class TestCreateFirewall:
    def test_named_backends(self):
        assert isinstance(create_firewall("pf"), PfTableFirewall)
        assert isinstance(create_firewall("ipset"), IpsetFirewall)
        assert isinstance(create_firewall("log"), LogFirewall)

    @patch(RUN)
    def test_custom_command_and_table(self, mock_run: MagicMock):
        create_firewall("pf", table="spammers", command="/usr/sbin/pfctl").flush()
        assert mock_run.call_args.args[0] == [
            "/usr/sbin/pfctl", "-q", "-t", "spammers", "-T", "flush",
        ]

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown firewall backend"):
            create_firewall("iptables-legacy")

    def test_default_backend_by_platform(self):
        with patch("denyspam.firewall.platform.system", return_value="Linux"):
            assert default_backend() == "ipset"
            assert isinstance(create_firewall(), IpsetFirewall)
        with patch("denyspam.firewall.platform.system", return_value="FreeBSD"):
            assert default_backend() == "pf"

    def test_backends_satisfy_protocol(self):
        for fw in (PfTableFirewall(), IpsetFirewall(), LogFirewall()):
            assert isinstance(fw, Firewall)


def test_pf_flush_failure_logged_once(caplog):
    error = subprocess.CalledProcessError(1, ["pfctl"], stderr="")
    with patch(RUN, side_effect=error) as mock_run, caplog.at_level(logging.ERROR):
        assert PfTableFirewall().flush() is False
    assert mock_run.call_args_list == [
        call(
            ["/sbin/pfctl", "-q", "-t", "denyspam", "-T", "flush"],
            input=None,
            check=True,
            capture_output=True,
            text=True,
            timeout=5,
        )
    ]
    assert "exit 1" in caplog.text
