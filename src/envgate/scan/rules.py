"""Declarative rule registry loaded from YAML.

The packaged default lives in ``envgate/rules/default.yaml``. A repository
may point at its own registry file; either way the registry is built once
per run and never mutated.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from importlib.resources import files
from pathlib import Path
from typing import Any

import yaml

DEFAULT_REGISTRY_PACKAGE = "envgate.rules"
DEFAULT_REGISTRY_NAME = "default.yaml"


class RegistryError(RuntimeError):
    """Raised when a rule registry document is malformed."""


class RuleCategory(str, Enum):
    """Independent rule families; each yields at most one violation per file."""

    ENV_VALUE = "env_value"
    SECRET_FINGERPRINT = "secret_fingerprint"


@dataclass(frozen=True)
class PatternRule:
    """Single named pattern within a category."""

    id: str
    category: RuleCategory
    pattern: str
    label: str
    case_sensitive: bool = False
    matcher: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        flags = 0 if self.case_sensitive else re.IGNORECASE
        try:
            compiled = re.compile(self.pattern, flags)
        except re.error as exc:
            raise RegistryError(f"rule {self.id!r}: invalid pattern: {exc}") from exc
        object.__setattr__(self, "matcher", compiled)

    def search(self, line: str) -> re.Match[str] | None:
        return self.matcher.search(line)


@dataclass(frozen=True)
class RuleRegistry:
    """Ordered, immutable collection of pattern rules."""

    rules: tuple[PatternRule, ...]

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise RegistryError(f"duplicate rule id: {rule.id}")
            seen.add(rule.id)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(rule.id for rule in self.rules)

    def get(self, rule_id: str) -> PatternRule:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        raise KeyError(f"unknown rule id: {rule_id}")

    def by_category(self, category: RuleCategory) -> tuple[PatternRule, ...]:
        return tuple(rule for rule in self.rules if rule.category is category)

    def with_case_overrides(self, overrides: Mapping[str, bool]) -> RuleRegistry:
        """Return a registry with per-rule case sensitivity replaced."""
        unknown = sorted(set(overrides) - set(self.ids))
        if unknown:
            raise RegistryError(f"case sensitivity set for unknown rule(s): {', '.join(unknown)}")
        rebuilt = []
        for rule in self.rules:
            if rule.id in overrides and bool(overrides[rule.id]) != rule.case_sensitive:
                rule = PatternRule(
                    id=rule.id,
                    category=rule.category,
                    pattern=rule.pattern,
                    label=rule.label,
                    case_sensitive=bool(overrides[rule.id]),
                )
            rebuilt.append(rule)
        return RuleRegistry(rules=tuple(rebuilt))

    @classmethod
    def from_dict(cls, data: Any, *, source: str = "<registry>") -> RuleRegistry:
        """Parse and validate a registry document."""
        if not isinstance(data, dict):
            raise RegistryError(f"{source}: registry must be a mapping")
        entries = data.get("rules")
        if not isinstance(entries, list) or not entries:
            raise RegistryError(f"{source}: 'rules' must be a non-empty list")
        return cls(rules=tuple(_parse_rule(entry, source) for entry in entries))


def _parse_rule(entry: Any, source: str) -> PatternRule:
    if not isinstance(entry, dict):
        raise RegistryError(f"{source}: rule entries must be mappings")
    missing = [key for key in ("id", "category", "pattern") if key not in entry]
    if missing:
        raise RegistryError(f"{source}: rule {entry.get('id', '?')!r} missing {', '.join(missing)}")
    try:
        category = RuleCategory(entry["category"])
    except ValueError as exc:
        raise RegistryError(f"{source}: rule {entry['id']!r}: unknown category {entry['category']!r}") from exc
    return PatternRule(
        id=str(entry["id"]),
        category=category,
        pattern=str(entry["pattern"]),
        label=str(entry.get("label") or entry["id"]),
        case_sensitive=bool(entry.get("case_sensitive", False)),
    )


def _load_yaml(text: str, source: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RegistryError(f"Malformed YAML registry at {source}: {exc}") from exc


def load_registry(path: Path | None = None) -> RuleRegistry:
    """Load the packaged registry, or the registry document at ``path``."""
    if path is None:
        resource = files(DEFAULT_REGISTRY_PACKAGE).joinpath(DEFAULT_REGISTRY_NAME)
        source = f"{DEFAULT_REGISTRY_PACKAGE}/{DEFAULT_REGISTRY_NAME}"
        text = resource.read_text(encoding="utf-8")
    else:
        source = str(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RegistryError(f"Unable to read rule registry {path}: {exc}") from exc
    return RuleRegistry.from_dict(_load_yaml(text, source), source=source)
