"""End-to-end gate behavior against real temporary repositories."""

from __future__ import annotations

from pathlib import Path

import pytest

from envgate.approval import ApprovalGate, default_gate
from envgate.gate import check_repository, run_gate
from envgate.git.staged import ChangeStatus, CollectorError, StagedChange
from envgate.report import Disposition
from envgate.scan.classifier import FileClassifier
from envgate.scan.rules import RuleCategory, load_registry

GITHUB_PAT = "ghp_" + "k" * 36


def _marker(repo: Path) -> Path:
    return repo / ".git" / "secret-approval"


def test_clean_change_is_allowed(git_repo: Path, stage) -> None:
    stage("src/app.py", "print('hello')\n")

    report = check_repository(git_repo, environ={})

    assert report.disposition is Disposition.ALLOWED
    assert report.exit_code == 0
    assert report.decision is None


def test_template_env_file_is_never_flagged(git_repo: Path, stage) -> None:
    stage(".env.example", f"API_KEY=x\nTOKEN={GITHUB_PAT}\n")

    report = check_repository(git_repo, environ={})

    assert report.violations == []
    assert report.disposition is Disposition.ALLOWED


def test_env_value_line_blocks_without_approval(git_repo: Path, stage) -> None:
    stage(".env", "API_KEY=secret123\n")

    report = check_repository(git_repo, environ={})

    assert [(v.file, v.category) for v in report.violations] == [(".env", RuleCategory.ENV_VALUE)]
    assert report.disposition is Disposition.BLOCKED
    assert report.exit_code == 1


def test_environment_override_allows_and_leaves_marker_absent(git_repo: Path, stage) -> None:
    stage(".env", "API_KEY=secret123\n")

    report = check_repository(git_repo, environ={"ALLOW_SECRET_COMMIT": "1"})

    assert report.disposition is Disposition.ALLOWED_WITH_OVERRIDE
    assert report.exit_code == 0
    assert not _marker(git_repo).exists()


def test_marker_override_is_single_use(git_repo: Path, stage) -> None:
    stage(".env", "API_KEY=secret123\n")
    _marker(git_repo).write_text("approved-by: alice\n")

    first = check_repository(git_repo, environ={})
    assert first.disposition is Disposition.ALLOWED_WITH_OVERRIDE
    assert first.exit_code == 0
    assert not _marker(git_repo).exists()

    second = check_repository(git_repo, environ={})
    assert second.disposition is Disposition.BLOCKED
    assert second.exit_code == 1


def test_marker_untouched_when_nothing_is_flagged(git_repo: Path, stage) -> None:
    stage("notes.txt", "nothing to see\n")
    _marker(git_repo).write_text("approved-by: alice\n")

    report = check_repository(git_repo, environ={})

    assert report.disposition is Disposition.ALLOWED
    assert _marker(git_repo).exists()


def test_fingerprint_flagged_outside_env_context(git_repo: Path, stage) -> None:
    stage("docs/setup.md", f"Use token {GITHUB_PAT} to clone.\n")

    report = check_repository(git_repo, environ={})

    assert [(v.rule_id, v.category) for v in report.violations] == [("github-pat", RuleCategory.SECRET_FINGERPRINT)]
    assert report.disposition is Disposition.BLOCKED


def test_binary_file_is_out_of_scope(git_repo: Path, stage) -> None:
    stage("assets/blob.bin", b"\x00\x01" + GITHUB_PAT.encode() + b"\x00")

    report = check_repository(git_repo, environ={})

    assert report.violations == []
    assert report.disposition is Disposition.ALLOWED
    assert report.outcomes[0].classification.in_scope is False


def test_only_added_lines_are_judged(git_repo: Path, stage, commit) -> None:
    stage(".env", "API_KEY=secret123\n")
    commit("pre-existing secret")
    stage(".env", "API_KEY=secret123\n# comment only\n")

    report = check_repository(git_repo, environ={})

    assert report.violations == []
    assert report.disposition is Disposition.ALLOWED


def test_repeated_scans_are_identical(git_repo: Path, stage) -> None:
    stage(".env", "API_KEY=secret123\n")
    stage("app.py", f"T = '{GITHUB_PAT}'\n")

    first = check_repository(git_repo, environ={})
    second = check_repository(git_repo, environ={})

    assert first.violations == second.violations
    assert first.disposition is second.disposition is Disposition.BLOCKED


def test_case_sensitivity_from_config(git_repo: Path, stage) -> None:
    (git_repo / ".envgate.toml").write_text("[rules.case_sensitive]\naws-access-key-id = true\n")
    stage("app.py", "key = 'akiaiosfodnn7example'\n")

    assert check_repository(git_repo, environ={}).disposition is Disposition.ALLOWED


def test_invalid_config_fails_closed(git_repo: Path, stage) -> None:
    (git_repo / ".envgate.toml").write_text("[scan\n")
    stage("app.py", "print('hello')\n")

    report = check_repository(git_repo, environ={"ALLOW_SECRET_COMMIT": "1"})

    assert report.disposition is Disposition.BLOCKED
    assert "Malformed TOML" in report.errors[0]


def test_not_a_repository_fails_closed(tmp_path: Path) -> None:
    report = check_repository(tmp_path, environ={})

    assert report.disposition is Disposition.BLOCKED
    assert report.errors


def test_collector_failure_blocks_even_with_approval(tmp_path: Path) -> None:
    def broken(repo_root: Path) -> list[StagedChange]:
        raise CollectorError("index file corrupt")

    approval = default_gate(tmp_path, environ={"ALLOW_SECRET_COMMIT": "1"})
    report = run_gate(
        tmp_path,
        registry=load_registry(),
        classifier=FileClassifier(),
        approval=approval,
        collector=broken,
    )

    assert report.disposition is Disposition.BLOCKED
    assert report.decision is None
    assert report.errors == ["index file corrupt"]


def test_binary_probe_takes_precedence_over_content(tmp_path: Path) -> None:
    def collector(repo_root: Path) -> list[StagedChange]:
        return [StagedChange(path="firmware.img", status=ChangeStatus.ADDED, added_lines=(GITHUB_PAT,))]

    report = run_gate(
        tmp_path,
        registry=load_registry(),
        classifier=FileClassifier(),
        approval=ApprovalGate([]),
        collector=collector,
        probe_factory=lambda root: (lambda path: True),
    )

    assert report.violations == []
    assert report.disposition is Disposition.ALLOWED


@pytest.mark.parametrize("context", [True, False])
def test_context_flag_only_changes_excerpts(git_repo: Path, stage, context: bool) -> None:
    stage("app.py", f"T = '{GITHUB_PAT}'\n")

    report = check_repository(git_repo, environ={}, context=context)

    assert report.disposition is Disposition.BLOCKED
    assert (report.violations[0].excerpt is not None) is context


@pytest.mark.parametrize("separator", ["\x0b", "\x0c", "\r", "\x1c", "\x1d", "\x1e", "\x85", "\u2028", "\u2029"])
def test_secret_after_inline_separator_blocks(git_repo: Path, stage, separator: str) -> None:
    stage("app.py", f"x = 1 {separator} token = '{GITHUB_PAT}'\n")

    report = check_repository(git_repo, environ={})

    assert [v.rule_id for v in report.violations] == ["github-pat"]
    assert report.disposition is Disposition.BLOCKED


def test_unreadable_config_fails_closed(git_repo: Path, stage) -> None:
    (git_repo / ".envgate.toml").mkdir()
    stage("app.py", "print('hello')\n")

    report = check_repository(git_repo, environ={"ALLOW_SECRET_COMMIT": "1"})

    assert report.disposition is Disposition.BLOCKED
    assert "Unable to read config" in report.errors[0]
