"""Scan report aggregation, rendering and exit disposition."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from rich.console import Console
from rich.markup import escape

from envgate.approval import GateDecision
from envgate.scan.engine import CheckLine, FileOutcome, Violation

REMEDIATION_HINT = (
    "To approve: re-run with {env_var}=1, or create {marker} (single-use) "
    "and commit again (`envgate approve` writes it for you)."
)


class Disposition(str, Enum):
    ALLOWED = "allowed"
    ALLOWED_WITH_OVERRIDE = "allowed_with_override"
    BLOCKED = "blocked"

    @property
    def exit_code(self) -> int:
        return 1 if self is Disposition.BLOCKED else 0


@dataclass
class ScanReport:
    """Single run result: per-file outcomes, violations and the verdict."""

    outcomes: list[FileOutcome] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    disposition: Disposition = Disposition.ALLOWED
    decision: GateDecision | None = None
    errors: list[str] = field(default_factory=list)
    env_var: str = "ALLOW_SECRET_COMMIT"
    marker: str = ".git/secret-approval"

    @property
    def exit_code(self) -> int:
        return self.disposition.exit_code


def decide(violations: list[Violation], decision: GateDecision | None, errors: list[str]) -> Disposition:
    """Blocked iff the run is uncertain, or violations exist without approval."""
    if errors:
        return Disposition.BLOCKED
    if not violations:
        return Disposition.ALLOWED
    if decision is not None and decision.approved:
        return Disposition.ALLOWED_WITH_OVERRIDE
    return Disposition.BLOCKED


_MARKS = {
    "pass": "[green]✔[/green]",
    "skip": "[green]✔[/green]",
    "fail": "[red]✖[/red]",
}


def _render_check(check: CheckLine, console: Console) -> None:
    text = escape(check.message)
    if check.status == "skip":
        text = f"[dim]{text}[/dim]"
    console.print(f"{_MARKS[check.status]} {text}")


def _violation_line(violation: Violation) -> str:
    line = escape(f"{violation.file}: {violation.message} [{violation.rule_id}]")
    if violation.excerpt:
        line += f"\n      {escape(violation.excerpt)}"
    return line


def render_report(report: ScanReport, console: Console) -> None:
    """Print per-file accounting, the verdict and, on block, how to approve."""
    for outcome in report.outcomes:
        console.print(f"— {escape(outcome.path)} —")
        for check in outcome.checks:
            _render_check(check, console)
        console.print()

    for error in report.errors:
        console.print(f"[red]✖ {escape(error)}[/red]")

    if report.disposition is Disposition.ALLOWED:
        console.print("[green]Security check finished - no problems found.[/green]")
        return

    if report.disposition is Disposition.ALLOWED_WITH_OVERRIDE:
        decision = report.decision
        source = decision.source if decision else "approval"
        console.print(f"[yellow]Possible secrets detected, but allowed by {escape(str(source))}.[/yellow]")
        if decision and decision.note:
            console.print(f"[yellow]   approval note: {escape(decision.note)}[/yellow]")
        for violation in report.violations:
            console.print(f"[yellow]   - {_violation_line(violation)}[/yellow]")
        for warning in decision.warnings if decision else ():
            console.print(f"[bold yellow]WARNING: {escape(warning)}[/bold yellow]")
        return

    if report.errors:
        console.print("[bold red]Commit aborted: unable to certify the staged changes are safe.[/bold red]")
        return

    console.print("[bold red]Commit aborted: possible secrets detected.[/bold red]")
    for violation in report.violations:
        console.print(f" - {_violation_line(violation)}")
    console.print(escape(REMEDIATION_HINT.format(env_var=report.env_var, marker=report.marker)))


def report_to_dict(report: ScanReport) -> dict[str, Any]:
    """JSON-ready view of a report."""
    decision = report.decision
    return {
        "disposition": report.disposition.value,
        "exit_code": report.exit_code,
        "errors": list(report.errors),
        "approval": None
        if decision is None
        else {
            "state": decision.state.value,
            "source": decision.source,
            "note": decision.note,
            "warnings": list(decision.warnings),
        },
        "violations": [
            {
                "file": v.file,
                "rule_id": v.rule_id,
                "category": v.category.value,
                "message": v.message,
                "excerpt": v.excerpt,
            }
            for v in report.violations
        ],
        "files": [
            {
                "path": o.path,
                "exempt": o.classification.exempt,
                "in_scope": o.classification.in_scope,
                "is_env_target": o.classification.is_env_target,
                "checks": [{"id": c.id, "status": c.status, "message": c.message} for c in o.checks],
            }
            for o in report.outcomes
        ],
    }
