"""Daemon — wires the pipeline together and runs its long-lived tasks.

Three threads share the host registry:

* ``monitor`` — follows the mail log and feeds the session tracker
* ``unblock`` — releases expired blocks every ``unblock_interval``
* ``maintenance`` — forgets stale hosts/sessions, saves the snapshot and
  cleans the RBL cache every ``maintenance_interval``
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from denyspam.config import ConfigError, DenySpamConfig
from denyspam.firewall import Firewall, create_firewall
from denyspam.hosts.registry import HostRegistry
from denyspam.rbl import RblChecker
from denyspam.rules.engine import RuleEngine, parse_networks
from denyspam.rules.loader import build_rules
from denyspam.session.parser import LineParser
from denyspam.session.tracker import SessionTracker
from denyspam.storage.snapshot import SnapshotStore
from denyspam.tail import FollowError, LogFollower

logger = logging.getLogger(__name__)


class Daemon:
    """Owns the registry, tracker, engine, cache and snapshot store."""

    def __init__(
        self,
        config: DenySpamConfig,
        firewall: Firewall | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._clock = clock
        self._stop_event = threading.Event()
        self._threads: dict[str, threading.Thread] = {}
        self._stopped = False

        try:
            self.firewall = firewall or create_firewall(
                backend=config.firewall.backend,
                table=config.firewall.table,
                command=config.firewall.command,
            )
            self._deny = parse_networks(config.deny)
            allow = parse_networks(config.allow)
            self.rbl = RblChecker(ttl=config.rbl_ttl, clock=clock)
            rules = build_rules(config.rules, config.predicates, self.rbl)
            parser = LineParser(config.patterns)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        self.registry = HostRegistry(
            self.firewall,
            block_minutes=config.block_minutes,
            default_score=config.default_score,
            clock=clock,
        )
        self.engine = RuleEngine(rules, self.registry, allow=allow, deny=self._deny)
        self.tracker = SessionTracker(
            self.registry,
            self.engine,
            parser=parser,
            timeout=config.session_timeout,
            clock=clock,
        )
        self.store = SnapshotStore(config.snapshot_file)
        self.follower: LogFollower | None = None
        self._start_offset = 0

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads.values())

    @property
    def offset(self) -> int:
        if self.follower is not None:
            return self.follower.offset
        return self._start_offset

    def restore(self) -> None:
        """Load host data, reset the firewall table and re-apply live blocks."""
        snapshot = self.store.load()
        self._start_offset = snapshot.last_offset
        self.registry.load(snapshot.hosts)
        logger.info(
            "Loaded %d host(s); resuming %s at offset %d",
            len(snapshot.hosts),
            self.config.log_file,
            snapshot.last_offset,
        )

        if not self.firewall.flush():
            logger.error("Unable to flush the firewall table")
        if self._deny:
            denied = [str(net) for net in self._deny]
            if not self.firewall.add(denied):
                logger.error("Unable to block deny-listed %s", " ".join(denied))
        self.registry.reconcile()

    def start(self) -> None:
        """Restore state and start the monitor, unblock and maintenance threads."""
        self._stop_event.clear()
        self._stopped = False
        self.restore()

        self.follower = LogFollower(
            self.config.log_file,
            offset=self._start_offset,
            interval=self.config.poll_interval,
            quiet_period=self.config.quiet_period,
            stop_event=self._stop_event,
            clock=self._clock,
        )
        self._spawn("monitor", self._monitor_loop)
        self._spawn("unblock", self._unblock_loop)
        self._spawn("maintenance", self._maintenance_loop)
        logger.info("Monitoring %s", self.config.log_file)

    def wait(self) -> None:
        """Block until stop() is called or the monitor thread dies."""
        while not self._stop_event.is_set():
            monitor = self._threads.get("monitor")
            if monitor is None or not monitor.is_alive():
                break
            self._stop_event.wait(timeout=1.0)

    def stop(self) -> None:
        """Signal the threads to stop. Safe to call from a signal handler."""
        self._stop_event.set()

    def shutdown(self) -> None:
        """Stop every thread, save a final snapshot and release blocks."""
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()
        for name, thread in self._threads.items():
            if thread is not threading.current_thread():
                thread.join(timeout=10)
                if thread.is_alive():
                    logger.warning("%s thread did not stop in time", name)
        self._threads.clear()

        self.save()
        if self.config.release_on_exit:
            if self.firewall.flush():
                logger.info("Released all blocks")
            else:
                logger.error("Unable to flush the firewall table on exit")
        logger.info("Stopped monitoring %s", self.config.log_file)

    def process_line(self, line: str) -> None:
        """Feed one log line through the tracker and rule engine."""
        self.tracker.observe(line)

    def maintain(self) -> None:
        """One maintenance pass."""
        self.registry.evict_stale(self.config.host_retention)
        self.tracker.evict_idle()
        self.save()
        self.rbl.cache.evict_expired()

    def save(self) -> bool:
        return self.store.save(self.offset, self.registry.hosts())

    def _spawn(self, name: str, target: Callable[[], None]) -> None:
        thread = threading.Thread(target=target, name=f"denyspam-{name}", daemon=True)
        self._threads[name] = thread
        thread.start()

    def _monitor_loop(self) -> None:
        assert self.follower is not None
        try:
            for line in self.follower.lines():
                self.process_line(line)
        except FollowError as e:
            logger.critical("Cannot monitor log: %s", e)
            self._stop_event.set()
        except Exception:
            logger.exception("Monitor thread crashed; shutting down")
            self._stop_event.set()

    def _unblock_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.config.unblock_interval):
            self.registry.sweep()

    def _maintenance_loop(self) -> None:
        while not self._stop_event.wait(timeout=self.config.maintenance_interval):
            self.maintain()
