"""Build rule objects from their configuration form."""

from __future__ import annotations

import importlib
from collections.abc import Iterable

from denyspam.rbl import RblChecker
from denyspam.rules.models import PatternRule, PredicateRule, PredicateSpec, Rule

_RBL_PREFIX = "rbl:"


def parse_pattern_rules(rules_data: list) -> list[PatternRule]:
    """Parse ``[{points: N, patterns: [...]}, ...]`` into PatternRules."""
    rules: list[PatternRule] = []
    for entry in _entries(rules_data, "rules"):
        points = _points(entry, "rules")
        patterns = entry.get("patterns", entry.get("pattern", []))
        if isinstance(patterns, str):
            patterns = [patterns]
        ignore_case = bool(entry.get("ignore_case", False))
        for pattern in patterns:
            rules.append(
                PatternRule(
                    points=points,
                    pattern=str(pattern),
                    ignore_case=ignore_case,
                )
            )
    return rules


def parse_predicate_specs(predicates_data: list) -> list[PredicateSpec]:
    """Parse ``[{points: N, checks: [...]}, ...]`` into PredicateSpecs."""
    specs: list[PredicateSpec] = []
    for entry in _entries(predicates_data, "predicates"):
        points = _points(entry, "predicates")
        checks = entry.get("checks", entry.get("check", []))
        if isinstance(checks, str):
            checks = [checks]
        for ref in checks:
            specs.append(PredicateSpec(points=points, ref=str(ref)))
    return specs


def resolve_predicates(
    specs: Iterable[PredicateSpec],
    rbl: RblChecker,
) -> list[PredicateRule]:
    """Turn predicate references into callables.

    ``rbl:<zone>`` becomes a cached blackhole-list lookup; anything else
    is imported as ``package.module:function``.
    """
    rules: list[PredicateRule] = []
    for spec in specs:
        if spec.ref.startswith(_RBL_PREFIX):
            zone = spec.ref[len(_RBL_PREFIX) :].strip()
            if not zone:
                raise ValueError(f"Empty RBL zone in predicate '{spec.ref}'")
            check = rbl.predicate(zone)
        else:
            check = _import_callable(spec.ref)
        rules.append(PredicateRule(points=spec.points, check=check, name=spec.ref))
    return rules


def build_rules(
    patterns: Iterable[PatternRule],
    predicates: Iterable[PredicateSpec],
    rbl: RblChecker,
) -> list[Rule]:
    """Pattern rules first, then predicates, each in configuration order."""
    rules: list[Rule] = list(patterns)
    rules.extend(resolve_predicates(predicates, rbl))
    return rules


def _entries(data: object, section: str) -> list[dict]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"'{section}' must be a list")
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError(f"Each entry in '{section}' must be a mapping")
    return data


def _points(entry: dict, section: str) -> int:
    if "points" not in entry:
        raise ValueError(f"Entry in '{section}' is missing 'points'")
    try:
        return int(entry["points"])
    except (TypeError, ValueError):
        raise ValueError(
            f"Invalid points value in '{section}': {entry['points']!r}"
        ) from None


def _import_callable(ref: str):
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Predicate '{ref}' must be 'rbl:<zone>' or 'package.module:function'"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(
            f"Cannot import predicate module '{module_name}': {exc}"
        ) from exc
    check = getattr(module, attr, None)
    if not callable(check):
        raise ValueError(f"Predicate '{ref}' is not a callable")
    return check
