"""Rule evaluation over the added lines of one staged file."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Literal

from envgate.git.staged import StagedChange
from envgate.scan.classifier import FileClassification
from envgate.scan.rules import PatternRule, RuleCategory, RuleRegistry

logger = logging.getLogger(__name__)

EXCERPT_MAX = 120
MASK_KEEP = 4

CheckStatus = Literal["pass", "fail", "skip"]


@dataclass(frozen=True)
class CheckLine:
    """Outcome of one predicate or rule for one file."""

    id: str
    status: CheckStatus
    message: str


@dataclass(frozen=True)
class Violation:
    """A rule category tripped by a file's added lines."""

    file: str
    rule_id: str
    category: RuleCategory
    message: str
    excerpt: str | None = None


@dataclass
class FileOutcome:
    """Everything the report needs to account for one file."""

    path: str
    classification: FileClassification
    checks: list[CheckLine] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations


def _secret_spans(line: str, match: re.Match[str], rules: tuple[PatternRule, ...]) -> list[tuple[int, int]]:
    spans = [match.span()]
    for rule in rules:
        spans.extend(m.span() for m in rule.matcher.finditer(line))
    merged: list[tuple[int, int]] = []
    for start, end in sorted(spans):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def mask_excerpt(line: str, match: re.Match[str], rules: tuple[PatternRule, ...] = ()) -> str:
    """Mask the matched secret, keeping a short prefix for recognition.

    Every other hit of ``rules`` on the same line is masked as well.
    """
    pieces: list[str] = []
    cursor = 0
    for start, end in _secret_spans(line, match, rules):
        secret = line[start:end]
        pieces.append(line[cursor:start])
        pieces.append(secret[:MASK_KEEP] + "*" * max(len(secret) - MASK_KEEP, 0))
        cursor = end
    pieces.append(line[cursor:])
    masked = "".join(pieces).strip()
    if len(masked) > EXCERPT_MAX:
        masked = masked[: EXCERPT_MAX - 3] + "..."
    return masked


def first_match(rules: tuple[PatternRule, ...], lines: tuple[str, ...]) -> tuple[PatternRule, str, re.Match[str]] | None:
    """Return the first rule (in registry order) that matches any line."""
    for rule in rules:
        for line in lines:
            match = rule.search(line)
            if match is not None:
                return rule, line, match
    return None


def _category_violation(
    path: str,
    category: RuleCategory,
    registry: RuleRegistry,
    lines: tuple[str, ...],
    context: bool,
) -> Violation | None:
    hit = first_match(registry.by_category(category), lines)
    if hit is None:
        return None
    rule, line, match = hit
    logger.debug("%s: rule %s matched", path, rule.id)
    excerpt = None
    if context:
        excerpt = mask_excerpt(line, match, registry.by_category(RuleCategory.SECRET_FINGERPRINT))
    return Violation(
        file=path,
        rule_id=rule.id,
        category=category,
        message=rule.label,
        excerpt=excerpt,
    )


def evaluate(
    change: StagedChange,
    classification: FileClassification,
    registry: RuleRegistry,
    *,
    context: bool = False,
) -> FileOutcome:
    """Apply classifier results and both rule categories to one file.

    Each category contributes at most one violation. Exempt and
    out-of-scope files short-circuit before any rule runs.
    """
    outcome = FileOutcome(path=change.path, classification=classification)
    checks = outcome.checks

    if classification.exempt:
        checks.append(CheckLine("template", "skip", "template .env file (not scanned)"))
        return outcome
    checks.append(CheckLine("template", "pass", "not a template .env file"))

    if not classification.in_scope:
        checks.append(CheckLine("text", "skip", "binary or non-text content (not scanned)"))
        return outcome
    checks.append(CheckLine("text", "pass", "text content, in scope"))

    if not change.added_lines:
        checks.append(CheckLine("added", "pass", "no added lines (nothing to check)"))
        return outcome
    checks.append(CheckLine("added", "pass", f"{len(change.added_lines)} added line(s) to check"))

    if classification.is_env_target:
        violation = _category_violation(
            change.path, RuleCategory.ENV_VALUE, registry, change.added_lines, context
        )
        if violation is not None:
            checks.append(CheckLine(RuleCategory.ENV_VALUE.value, "fail", "value line added to .env file"))
            outcome.violations.append(violation)
        else:
            checks.append(CheckLine(RuleCategory.ENV_VALUE.value, "pass", "no value lines added to .env file"))
    else:
        checks.append(CheckLine(RuleCategory.ENV_VALUE.value, "skip", ".env value check not applicable"))

    violation = _category_violation(
        change.path, RuleCategory.SECRET_FINGERPRINT, registry, change.added_lines, context
    )
    if violation is not None:
        checks.append(
            CheckLine(
                RuleCategory.SECRET_FINGERPRINT.value,
                "fail",
                f"matches known secret pattern ({violation.message})",
            )
        )
        outcome.violations.append(violation)
    else:
        checks.append(CheckLine(RuleCategory.SECRET_FINGERPRINT.value, "pass", "no known secret patterns"))

    return outcome
