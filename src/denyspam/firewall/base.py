"""Firewall protocol — the add/remove/flush contract the registry drives."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Seconds before a firewall command is considered hung.
COMMAND_TIMEOUT = 5


@runtime_checkable
class Firewall(Protocol):
    """Protocol for packet-filter backends.

    Every method returns True on success. Failures are logged by the
    backend and never raised.
    """

    def add(self, addresses: Sequence[str]) -> bool:
        """Begin blocking addresses. Idempotent for already-blocked ones."""
        ...

    def remove(self, addresses: Sequence[str]) -> bool:
        """Stop blocking addresses."""
        ...

    def flush(self) -> bool:
        """Clear every block unconditionally."""
        ...


class CommandFirewall:
    """Shared subprocess plumbing for backends driven by a CLI tool."""

    name = "command"

    def _run(self, argv: list[str], stdin: str | None = None) -> bool:
        return self._output(argv, stdin) is not None

    def _output(self, argv: list[str], stdin: str | None = None) -> str | None:
        """Run argv and return its stdout, or None (logged) on failure."""
        try:
            proc = subprocess.run(
                argv,
                input=stdin,
                check=True,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT,
            )
        except subprocess.CalledProcessError as e:
            logger.error(
                "%s command failed (exit %d): %s",
                self.name,
                e.returncode,
                (e.stderr or "").strip() or " ".join(argv),
            )
            return None
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.error("%s command failed: %s", self.name, e)
            return None
        return proc.stdout or ""
