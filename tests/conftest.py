"""Pytest configuration and fixtures for envgate tests."""
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)

    if not cov_enabled:
        return

    cwd = Path.cwd()
    coverage_files = list(cwd.glob(".coverage*"))

    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "This suggests tests are not importing/executing package code. "
            "Check that tests import from 'envgate' (the package) not 'src/envgate' (filesystem path).",
            returncode=1
        )


def _git(repo: Path, *args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True, text=True)


@pytest.fixture(autouse=True)
def _no_ambient_approval(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's shell override from leaking into tests."""
    monkeypatch.delenv("ALLOW_SECRET_COMMIT", raising=False)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with one commit."""
    repo = tmp_path / "repo"
    repo.mkdir()

    _git(repo, "init", "-q")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test User")
    _git(repo, "config", "commit.gpgsign", "false")

    (repo / "README.md").write_text("# Test Repo\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-q", "-m", "Initial commit")

    return repo


@pytest.fixture
def stage(git_repo: Path) -> Callable[[str, str | bytes], Path]:
    """Write a file into the fixture repo and stage it."""

    def _stage(relative: str, content: str | bytes) -> Path:
        path = git_repo / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        _git(git_repo, "add", "--", relative)
        return path

    return _stage


@pytest.fixture
def commit(git_repo: Path) -> Callable[[str], None]:
    """Commit whatever is staged, bypassing hooks."""

    def _commit(message: str) -> None:
        _git(git_repo, "commit", "-q", "--no-verify", "-m", message)

    return _commit
