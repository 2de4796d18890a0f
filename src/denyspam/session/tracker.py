"""Session tracker — correlates interleaved log lines into connections."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from denyspam.hosts.registry import HostRegistry
from denyspam.session.models import LineKind, ParsedLine, Session
from denyspam.session.parser import LineParser

if TYPE_CHECKING:
    from denyspam.rules.engine import RuleEngine

logger = logging.getLogger(__name__)

# Seconds of inactivity before a session is forgotten.
DEFAULT_SESSION_TIMEOUT = 600.0


class SessionTracker:
    """Builds per-connection sessions from log lines and feeds the rule engine.

    Messages are scored as soon as they arrive; the disconnect line gives
    the session a final pass and closes it. Only the log pipeline calls
    ``observe``; the session map is locked because the maintenance loop
    evicts idle sessions from another thread.
    """

    def __init__(
        self,
        registry: HostRegistry,
        engine: RuleEngine,
        parser: LineParser | None = None,
        timeout: float = DEFAULT_SESSION_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._engine = engine
        self._parser = parser or LineParser()
        self._timeout = timeout
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, key: str) -> Session | None:
        with self._lock:
            return self._sessions.get(key)

    def observe(self, line: str) -> Session | None:
        """Process one log line. Returns the session closed by it, if any."""
        parsed = self._parser.parse(line)
        if parsed is None:
            return None

        if parsed.kind is LineKind.CONNECT:
            self._connect(parsed)
            return None
        if parsed.kind is LineKind.DISCONNECT:
            return self._disconnect(parsed)
        self._entry(parsed)
        return None

    def evict_idle(self, now: float | None = None) -> int:
        """Forget sessions that have been idle longer than the timeout."""
        now = self._clock() if now is None else now
        with self._lock:
            idle = [
                k for k, s in self._sessions.items() if s.is_idle(now, self._timeout)
            ]
            for key in idle:
                del self._sessions[key]
        if idle:
            logger.debug("Forgot %d idle session(s)", len(idle))
        return len(idle)

    def _connect(self, parsed: ParsedLine) -> None:
        session = Session(key=parsed.key, last_activity=self._clock())
        with self._lock:
            # A recycled pid whose disconnect we never saw starts over.
            self._sessions[parsed.key] = session

        session.learn(parsed.address, parsed.hostname)
        self._record_seen(session)

    def _entry(self, parsed: ParsedLine) -> None:
        with self._lock:
            session = self._sessions.get(parsed.key)
        if session is None:
            return

        session.buffer.append(parsed.message)
        if session.learn(parsed.address, parsed.hostname):
            self._record_seen(session)
        session.last_activity = self._clock()
        self._engine.score_session(session)

    def _disconnect(self, parsed: ParsedLine) -> Session | None:
        with self._lock:
            session = self._sessions.pop(parsed.key, None)
        if session is None:
            return None

        if session.learn(parsed.address, parsed.hostname):
            self._record_seen(session)
        session.last_activity = self._clock()
        self._engine.score_session(session)
        return session

    def _record_seen(self, session: Session) -> None:
        if session.address is None or session.seen_recorded:
            return
        if self._engine.is_exempt(session.address):
            return
        self._registry.record_seen(session.address)
        session.seen_recorded = True
