"""Daemon configuration — YAML config file, env vars, defaults."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from denyspam.rules.engine import parse_networks
from denyspam.rules.loader import parse_pattern_rules, parse_predicate_specs
from denyspam.rules.models import PatternRule, PredicateSpec
from denyspam.session.parser import LineParser, LinePatterns

DEFAULT_CONFIG_FILE = Path("/usr/local/etc/denyspam.yaml")


class ConfigError(ValueError):
    """The configuration file is unreadable or invalid."""


def default_config_file() -> Path:
    env = os.environ.get("DENYSPAM_CONF")
    if env:
        return Path(env)
    return DEFAULT_CONFIG_FILE


@dataclass
class FirewallConfig:
    """Which packet filter to drive and how."""

    backend: str = ""  # "" picks ipset on Linux, pf elsewhere
    table: str = "denyspam"
    command: str = ""


@dataclass
class DenySpamConfig:
    """Daemon-wide configuration."""

    log_file: Path = Path("/var/log/maillog")
    snapshot_file: Path = Path("/var/db/denyspam/hostdata.json")
    block_minutes: int = 30
    default_score: int = -10
    poll_interval: float = 5.0
    quiet_period: float = 600.0
    unblock_interval: float = 60.0
    maintenance_interval: float = 300.0
    session_timeout: float = 600.0
    host_retention: float = 604800.0  # one week
    rbl_ttl: float = 21600.0  # six hours
    release_on_exit: bool = True
    firewall: FirewallConfig = field(default_factory=FirewallConfig)
    allow: list[str] = field(default_factory=list)
    deny: list[str] = field(default_factory=list)
    rules: list[PatternRule] = field(default_factory=list)
    predicates: list[PredicateSpec] = field(default_factory=list)
    patterns: LinePatterns = field(default_factory=LinePatterns)

    @classmethod
    def load(cls, path: str | Path | None = None) -> DenySpamConfig:
        """Load the YAML config file, then apply environment overrides.

        A missing file leaves every setting at its default.
        """
        path = Path(path) if path is not None else default_config_file()
        config = cls()

        if path.exists():
            try:
                data = yaml.safe_load(path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read {path}: {e}") from e
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise ConfigError(f"{path}: configuration must be a mapping")
            try:
                config = cls.from_dict(data)
            except (TypeError, ValueError, re.error) as e:
                raise ConfigError(f"{path}: {e}") from e

        config._apply_env()
        return config

    @classmethod
    def from_dict(cls, data: dict) -> DenySpamConfig:
        """Build a config from parsed YAML. Raises ValueError on bad values."""
        config = cls()
        for name in ("log_file", "snapshot_file"):
            if name in data:
                setattr(config, name, Path(str(data[name])))
        for name in ("block_minutes", "default_score"):
            if name in data:
                setattr(config, name, int(data[name]))
        for name in (
            "poll_interval",
            "quiet_period",
            "unblock_interval",
            "maintenance_interval",
            "session_timeout",
            "host_retention",
            "rbl_ttl",
        ):
            if name in data:
                value = float(data[name])
                if value <= 0:
                    raise ValueError(f"'{name}' must be positive")
                setattr(config, name, value)
        if "release_on_exit" in data:
            config.release_on_exit = bool(data["release_on_exit"])
        if config.block_minutes < 0:
            raise ValueError("'block_minutes' must not be negative")

        fw = data.get("firewall") or {}
        if not isinstance(fw, dict):
            raise ValueError("'firewall' must be a mapping")
        config.firewall = FirewallConfig(
            backend=str(fw.get("backend", "")),
            table=str(fw.get("table", "denyspam")),
            command=str(fw.get("command", "")),
        )

        config.allow = _str_list(data.get("allow"), "allow")
        config.deny = _str_list(data.get("deny"), "deny")
        parse_networks(config.allow + config.deny)
        config.rules = parse_pattern_rules(data.get("rules"))
        config.predicates = parse_predicate_specs(data.get("predicates"))

        patterns = data.get("patterns") or {}
        if not isinstance(patterns, dict):
            raise ValueError("'patterns' must be a mapping")
        unknown = set(patterns) - {"connect", "disconnect", "entry", "address"}
        if unknown:
            raise ValueError(f"Unknown line pattern(s): {', '.join(sorted(unknown))}")
        config.patterns = LinePatterns(**{k: str(v) for k, v in patterns.items()})
        LineParser(config.patterns)
        return config

    def _apply_env(self) -> None:
        env_log = os.environ.get("DENYSPAM_LOG_FILE")
        if env_log:
            self.log_file = Path(env_log)

        env_snapshot = os.environ.get("DENYSPAM_SNAPSHOT_FILE")
        if env_snapshot:
            self.snapshot_file = Path(env_snapshot)

        env_interval = os.environ.get("DENYSPAM_POLL_INTERVAL")
        if env_interval:
            try:
                self.poll_interval = float(env_interval)
            except ValueError:
                raise ConfigError(
                    f"DENYSPAM_POLL_INTERVAL is not a number: {env_interval!r}"
                ) from None


def _str_list(value: object, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ValueError(f"'{name}' must be a list")
    return [str(v) for v in value]
