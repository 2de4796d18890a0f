"""Host data snapshot — best-effort JSON persistence of the registry.

Layout::

    {"version": "1.0.0", "last_offset": 123456, "hosts": [{...}, ...]}

A snapshot written by a different version, or one that cannot be read,
is discarded: the daemon starts over with no hosts at offset 0.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from denyspam import __version__
from denyspam.hosts.models import Host

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """Everything needed to resume after a restart."""

    last_offset: int = 0
    hosts: list[Host] = field(default_factory=list)
    version: str = __version__


class SnapshotStore:
    """Loads and saves snapshots at a fixed path."""

    def __init__(self, path: str | Path, version: str = __version__) -> None:
        self.path = Path(path)
        self.version = version

    def load(self) -> Snapshot:
        """Read the snapshot, or return an empty one. Never raises."""
        if not self.path.exists():
            return Snapshot(version=self.version)

        logger.debug("Loading host data from %s", self.path)
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("snapshot must be a JSON object")

            version = data.get("version")
            if version != self.version:
                logger.warning(
                    "Host data in %s was written by version %s, not %s; ignoring it",
                    self.path,
                    version,
                    self.version,
                )
                return Snapshot(version=self.version)

            entries = data.get("hosts", [])
            if not isinstance(entries, list):
                raise ValueError("'hosts' must be a list")
            if not all(isinstance(h, dict) for h in entries):
                raise ValueError("each host must be a JSON object")
            hosts = [Host.from_dict(h) for h in entries]
            last_offset = int(data.get("last_offset", 0))
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.warning("Host data in %s is corrupt or invalid: %s", self.path, e)
            return Snapshot(version=self.version)

        return Snapshot(last_offset=max(0, last_offset), hosts=hosts, version=version)

    def save(self, last_offset: int, hosts: Iterable[Host]) -> bool:
        """Write a snapshot atomically. Returns False (and logs) on failure."""
        data = {
            "version": self.version,
            "last_offset": last_offset,
            "hosts": [h.to_dict() for h in hosts],
        }
        tmp_name = None
        try:
            if not self.path.parent.exists():
                logger.debug("Creating directory %s", self.path.parent)
                self.path.parent.mkdir(parents=True, exist_ok=True)

            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            logger.error("Error saving host data to %s: %s", self.path, e)
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

        logger.debug("Saved %d host(s) to %s", len(data["hosts"]), self.path)
        return True

    def read_hosts(self) -> list[Host]:
        """Hosts from the snapshot on disk, for reporting tools."""
        return self.load().hosts
