"""Session data models — one reconstructed MTA connection."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field


class LineKind(enum.Enum):
    """Shape of a recognised log line."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ENTRY = "entry"


@dataclass(frozen=True)
class ParsedLine:
    """Fields extracted from one log line."""

    kind: LineKind
    key: str
    address: str | None = None
    hostname: str | None = None
    message: str = ""


@dataclass
class Session:
    """A single SMTP connection, keyed by the MTA's process id.

    The key is recycled by the operating system, so a session only lives
    between its connect and disconnect lines (or until it goes idle).
    """

    key: str
    address: str | None = None
    hostname: str | None = None
    buffer: list[str] = field(default_factory=list)
    last_activity: float = field(default_factory=time.time)
    seen_recorded: bool = False

    def learn(self, address: str | None, hostname: str | None) -> bool:
        """Fill in address/hostname if still unknown.

        Returns True when the address was learned by this call.
        """
        if self.hostname is None and hostname:
            self.hostname = hostname
        if self.address is None and address:
            self.address = address
            return True
        return False

    def drain(self) -> list[str]:
        """Take every buffered message, leaving the buffer empty."""
        messages, self.buffer = self.buffer, []
        return messages

    def is_idle(self, now: float, timeout: float) -> bool:
        """Idle sessions with nothing left to attribute can be forgotten."""
        if now - self.last_activity < timeout:
            return False
        return self.address is None or not self.buffer
