"""``tail -F`` for the mail log — survives rotation, truncation and deletion.

The follower reads whole lines in binary mode and reports the byte offset
just past the last line it handed out, so a restarted daemon can resume
where it left off.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

# Reopen the file if nothing has been written for this many seconds.
DEFAULT_QUIET_PERIOD = 600.0


class FollowError(Exception):
    """The log path can never be followed (it is a directory)."""


class LogFollower:
    """Follows a growing text file, yielding complete lines as they appear.

    Each poll stats the path: a new inode/device means the file was rotated
    (whatever remained in the old file is read first, then the new file is
    read from the start); a smaller size means it was truncated; a missing
    path means it was deleted and will be reopened once it reappears.
    """

    def __init__(
        self,
        path: str | Path,
        offset: int = 0,
        interval: float = 5.0,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        stop_event: threading.Event | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = Path(path)
        self.interval = interval
        self._pos = max(0, offset)  # read position in the open file
        self._offset = self._pos  # just past the last line handed out
        self._quiet_period = quiet_period
        self._stop_event = stop_event or threading.Event()
        self._clock = clock
        self._file: BinaryIO | None = None
        self._identity: tuple[int, int] | None = None
        self._size = 0
        self._last_change = clock()
        self._waiting = False

    @property
    def offset(self) -> int:
        """Byte offset just past the last line handed out."""
        return self._offset

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def lines(self) -> Iterator[str]:
        """Yield lines until the stop event is set, waiting between polls."""
        try:
            while not self._stop_event.is_set():
                for line, end in self._poll():
                    yield line
                    self._offset = end
                self._offset = self._pos
                self._stop_event.wait(timeout=self.interval)
        finally:
            self.close()

    def poll(self) -> list[str]:
        """Run one cycle and return the complete lines read. Never sleeps."""
        lines = [line for line, _ in self._poll()]
        self._offset = self._pos
        return lines

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        self._identity = None

    def _poll(self) -> list[tuple[str, int]]:
        if self._file is None and not self._open():
            return []

        lines = self._restat()
        if self._file is None:
            return lines

        new = self._read_lines()
        lines.extend(new)
        now = self._clock()
        if new:
            self._last_change = now
        elif now - self._last_change > self._quiet_period:
            logger.debug(
                "%s hasn't changed in %d seconds; reopening it just to be safe",
                self.path,
                self._quiet_period,
            )
            self._reopen(keep_position=True)
        return lines

    def _open(self) -> bool:
        if self.path.is_dir():
            raise FollowError(f"{self.path} is a directory")
        try:
            f = open(self.path, "rb")
        except FileNotFoundError:
            if not self._waiting:
                logger.debug("%s does not exist; waiting for it", self.path)
                self._waiting = True
            return False

        if self._waiting:
            logger.debug("%s has been created", self.path)
            self._waiting = False

        st = os.fstat(f.fileno())
        if self._pos > st.st_size:
            logger.debug(
                "Previous position in %s is past the end of the file; "
                "restarting at the beginning",
                self.path,
            )
            self._pos = 0
        f.seek(self._pos)

        self._file = f
        self._identity = (st.st_dev, st.st_ino)
        self._size = st.st_size
        self._last_change = self._clock()
        return True

    def _reopen(self, keep_position: bool = False) -> None:
        identity, size = self._identity, self._size
        self.close()
        if keep_position:
            try:
                st = os.stat(self.path)
            except FileNotFoundError:
                st = None
            same = (
                st is not None
                and (st.st_dev, st.st_ino) == identity
                and st.st_size >= size
            )
            if not same:
                self._pos = 0
        else:
            self._pos = 0
        if self._open():
            logger.debug("%s has been reopened", self.path)

    def _restat(self) -> list[tuple[str, int]]:
        """Detect rotation, truncation or deletion.

        Returns whatever could still be read from the old file before it
        was let go.
        """
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            logger.debug("%s appears to have been deleted; waiting for it", self.path)
            lines = self._read_lines()
            self.close()
            self._pos = 0
            return lines

        if (st.st_dev, st.st_ino) != self._identity:
            logger.debug("%s appears to have been rotated; reopening", self.path)
            lines = self._read_lines()
            self._reopen()
            return lines

        if st.st_size < self._size:
            logger.debug("%s appears to have been truncated; reopening", self.path)
            self._reopen()
            return []

        self._size = st.st_size
        return []

    def _read_lines(self) -> list[tuple[str, int]]:
        if self._file is None:
            return []
        lines: list[tuple[str, int]] = []
        while True:
            raw = self._file.readline()
            if not raw:
                break
            if not raw.endswith(b"\n"):
                # Partial line; wait for the writer to finish it.
                self._file.seek(self._pos)
                break
            self._pos = self._file.tell()
            lines.append((raw.decode("utf-8", errors="replace"), self._pos))
        return lines
