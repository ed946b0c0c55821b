"""Pre-commit gate orchestration.

collect staged changes -> classify -> evaluate rules -> (on violations)
approval gate -> report. Any failure to inspect the index blocks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from envgate.approval import ApprovalGate, default_gate
from envgate.config import GateConfig, load_config
from envgate.git.staged import (
    CollectorError,
    StagedChange,
    collect_staged_changes,
    is_binary_diff,
    resolve_git_dir,
    resolve_repo_root,
)
from envgate.report import ScanReport, decide
from envgate.scan.classifier import FileClassifier
from envgate.scan.engine import evaluate
from envgate.scan.rules import RuleRegistry, load_registry

logger = logging.getLogger(__name__)

Collector = Callable[[Path], list[StagedChange]]
BinaryProbeFactory = Callable[[Path], Callable[[str], bool]]


def _git_binary_probe(repo_root: Path) -> Callable[[str], bool]:
    return lambda path: is_binary_diff(repo_root, path)


def run_gate(
    repo_root: Path,
    *,
    registry: RuleRegistry,
    classifier: FileClassifier,
    approval: ApprovalGate,
    context: bool = False,
    collector: Collector = collect_staged_changes,
    probe_factory: BinaryProbeFactory = _git_binary_probe,
) -> ScanReport:
    """Scan the staged index of ``repo_root`` and decide the disposition."""
    report = ScanReport()

    try:
        changes = collector(repo_root)
    except CollectorError as exc:
        logger.error("staged change collection failed: %s", exc)
        report.errors.append(str(exc))
        report.disposition = decide(report.violations, None, report.errors)
        return report

    probe = probe_factory(repo_root)
    for change in changes:
        classification = classifier.classify(change.path, probe)
        outcome = evaluate(change, classification, registry, context=context)
        report.outcomes.append(outcome)
        report.violations.extend(outcome.violations)

    if report.violations:
        report.decision = approval.check()

    report.disposition = decide(report.violations, report.decision, report.errors)
    logger.info(
        "scanned %d file(s): %d violation(s), disposition=%s",
        len(report.outcomes),
        len(report.violations),
        report.disposition.value,
    )
    return report


@dataclass(frozen=True)
class GateSetup:
    """Resolved inputs for one gate run."""

    repo_root: Path
    git_dir: Path
    config: GateConfig
    registry: RuleRegistry
    classifier: FileClassifier
    approval: ApprovalGate

    @property
    def marker_path(self) -> Path:
        return self.git_dir / self.config.approval.marker


def prepare(
    repo: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> GateSetup:
    """Resolve repo, config, registry and approval sources.

    Raises CollectorError, ConfigError or RegistryError; callers block.
    """
    repo_root = resolve_repo_root(repo)
    git_dir = resolve_git_dir(repo_root)
    config = load_config(repo_root)

    registry = load_registry(config.rules_path(repo_root))
    if config.rules.case_sensitive:
        registry = registry.with_case_overrides(config.rules.case_sensitive)

    classifier = FileClassifier(
        extra_text_extensions=config.scan.extra_text_extensions,
        extra_template_suffixes=config.scan.extra_template_suffixes,
    )
    approval = default_gate(
        git_dir,
        environ=environ,
        env_var=config.approval.env_var,
        marker_name=config.approval.marker,
    )
    return GateSetup(
        repo_root=repo_root,
        git_dir=git_dir,
        config=config,
        registry=registry,
        classifier=classifier,
        approval=approval,
    )


def check_repository(
    repo: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    context: bool | None = None,
) -> ScanReport:
    """Prepare and run the gate; setup failures yield a blocked report."""
    try:
        setup = prepare(repo, environ=environ)
    except RuntimeError as exc:
        logger.error("envgate setup failed: %s", exc)
        report = ScanReport(errors=[str(exc)])
        report.disposition = decide(report.violations, None, report.errors)
        return report

    report = run_gate(
        setup.repo_root,
        registry=setup.registry,
        classifier=setup.classifier,
        approval=setup.approval,
        context=setup.config.scan.show_context if context is None else context,
    )
    report.env_var = setup.config.approval.env_var
    report.marker = _display_marker(setup)
    return report


def _display_marker(setup: GateSetup) -> str:
    try:
        return str(setup.marker_path.relative_to(setup.repo_root))
    except ValueError:
        return str(setup.marker_path)
