"""Log line parser — recognises connect, disconnect and entry lines.

The default expressions match Postfix ``smtpd`` (including master.cf
services such as ``postfix/submission/smtpd``)::

    Oct 19 10:00:00 mx postfix/smtpd[4242]: connect from mail.example.com[192.0.2.1]
    Oct 19 10:00:01 mx postfix/smtpd[4242]: NOQUEUE: reject: RCPT from ...
    Oct 19 10:00:02 mx postfix/smtpd[4242]: disconnect from mail.example.com[192.0.2.1]

Custom expressions must use the named groups ``key``, ``hostname`` and
``address`` (connect/disconnect), ``key`` and ``message`` (entry), and
``hostname`` and ``address`` (address, searched within entry messages).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from denyspam.session.models import LineKind, ParsedLine

_SMTPD = r" postfix(?:/[\w.-]+)*/smtpd\[(?P<key>\d+)\]: "
_CLIENT = r"(?P<hostname>[^\[\s]+)\[(?P<address>[0-9A-Fa-f.:]+)\]"

DEFAULT_CONNECT = _SMTPD + r"connect from " + _CLIENT + r"\s*$"
DEFAULT_DISCONNECT = _SMTPD + r"disconnect from " + _CLIENT + r"(?:\s.*)?$"
DEFAULT_ENTRY = _SMTPD + r"(?P<message>.*?)\s*$"
DEFAULT_ADDRESS = r"(?:client=|from )" + _CLIENT

_REQUIRED_GROUPS = {
    "connect": {"key", "address"},
    "disconnect": {"key"},
    "entry": {"key", "message"},
    "address": {"address"},
}


@dataclass(frozen=True)
class LinePatterns:
    """Regular expressions for each line shape."""

    connect: str = DEFAULT_CONNECT
    disconnect: str = DEFAULT_DISCONNECT
    entry: str = DEFAULT_ENTRY
    address: str = DEFAULT_ADDRESS


class LineParser:
    """Matches lines against connect, disconnect and entry, in that order."""

    def __init__(self, patterns: LinePatterns | None = None) -> None:
        patterns = patterns or LinePatterns()
        self.patterns = patterns
        self._connect = _compile("connect", patterns.connect)
        self._disconnect = _compile("disconnect", patterns.disconnect)
        self._entry = _compile("entry", patterns.entry)
        self._address = _compile("address", patterns.address)

    def parse(self, line: str) -> ParsedLine | None:
        """Parse a log line, or return None if it is not one of ours."""
        line = line.rstrip("\r\n")

        m = self._connect.search(line)
        if m:
            return _client_line(LineKind.CONNECT, m)

        m = self._disconnect.search(line)
        if m:
            return _client_line(LineKind.DISCONNECT, m)

        m = self._entry.search(line)
        if m:
            message = m.group("message")
            address = hostname = None
            client = self._address.search(message)
            if client:
                address = _group(client, "address")
                hostname = _group(client, "hostname")
            return ParsedLine(
                kind=LineKind.ENTRY,
                key=m.group("key"),
                address=address,
                hostname=hostname,
                message=message,
            )

        return None


def _compile(name: str, pattern: str) -> re.Pattern[str]:
    regex = re.compile(pattern)
    missing = _REQUIRED_GROUPS[name] - set(regex.groupindex)
    if missing:
        raise ValueError(
            f"{name} pattern is missing named group(s): {', '.join(sorted(missing))}"
        )
    return regex


def _group(m: re.Match[str], name: str) -> str | None:
    if name not in m.re.groupindex:
        return None
    return m.group(name) or None


def _client_line(kind: LineKind, m: re.Match[str]) -> ParsedLine:
    return ParsedLine(
        kind=kind,
        key=m.group("key"),
        address=_group(m, "address"),
        hostname=_group(m, "hostname"),
    )
