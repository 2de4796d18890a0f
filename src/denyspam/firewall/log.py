"""Log-only backend — records what would be blocked without touching the firewall."""

from __future__ import annotations

import logging
from collections.abc import Sequence

logger = logging.getLogger(__name__)


class LogFirewall:
    """Dry-run backend: every call is logged and succeeds."""

    def __init__(self) -> None:
        self.blocked: set[str] = set()

    def add(self, addresses: Sequence[str]) -> bool:
        logger.warning("DRY RUN: would block %s", " ".join(addresses))
        self.blocked.update(addresses)
        return True

    def remove(self, addresses: Sequence[str]) -> bool:
        logger.warning("DRY RUN: would unblock %s", " ".join(addresses))
        self.blocked.difference_update(addresses)
        return True

    def flush(self) -> bool:
        logger.info("DRY RUN: would flush %d blocked address(es)", len(self.blocked))
        self.blocked.clear()
        return True
