"""Staged change collection from the git index.

Only the lines a commit would add are collected. Every git failure is
reported as ``CollectorError`` so callers can fail closed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from envgate.git.exec import ExecError, ExecResult, run_git

logger = logging.getLogger(__name__)

BINARY_SENTINEL = "Binary files"

# Paths are literal filenames from the index, never pathspec magic.
PATH_DIFF = ["--literal-pathspecs", "diff", "--cached", "--no-color", "--no-ext-diff"]


class CollectorError(RuntimeError):
    """Raised when the staged index cannot be inspected."""


class ChangeStatus(str, Enum):
    """Index status of a staged path (deletions are never collected)."""

    ADDED = "A"
    COPIED = "C"
    MODIFIED = "M"
    RENAMED = "R"


@dataclass(frozen=True)
class StagedChange:
    """A staged path and the lines it adds."""

    path: str
    status: ChangeStatus
    added_lines: tuple[str, ...]

    @property
    def is_new(self) -> bool:
        return self.status is ChangeStatus.ADDED


def _git(args: list[str], repo_root: Path) -> ExecResult:
    try:
        return run_git(args, repo_root=repo_root)
    except ExecError as exc:
        raise CollectorError(f"unable to inspect staged changes: {exc}") from exc


def resolve_repo_root(repo: Path | None = None) -> Path:
    """Resolve git repo root from cwd or explicit path."""
    probe = (repo or Path.cwd()).resolve()
    try:
        out = run_git(["rev-parse", "--show-toplevel"], repo_root=probe)
    except ExecError as exc:
        raise CollectorError(f"unable to resolve git repo root from {probe}: {exc}") from exc
    root = out.stdout.strip()
    if not root:
        raise CollectorError(f"unable to resolve git repo root from {probe}: empty output")
    return Path(root).resolve()


def resolve_git_dir(repo_root: Path) -> Path:
    """Return the absolute git directory (the approval marker lives here)."""
    out = _git(["rev-parse", "--absolute-git-dir"], repo_root).stdout.strip()
    if not out:
        raise CollectorError(f"unable to resolve git directory for {repo_root}: empty output")
    return Path(out)


def parse_name_status(output: str) -> list[tuple[str, ChangeStatus]]:
    """Parse ``git diff --name-status -z`` output.

    Renames and copies carry a similarity score and two paths; the
    destination path is the one that will be recorded.
    """
    tokens = output.split("\0")
    if tokens and tokens[-1] == "":
        tokens.pop()

    entries: list[tuple[str, ChangeStatus]] = []
    idx = 0
    while idx < len(tokens):
        code = tokens[idx]
        if not code:
            raise CollectorError("malformed name-status output: empty status field")
        letter = code[0]
        try:
            status = ChangeStatus(letter)
        except ValueError as exc:
            raise CollectorError(f"unexpected staged status {code!r}") from exc

        width = 2 if status in (ChangeStatus.RENAMED, ChangeStatus.COPIED) else 1
        if idx + width >= len(tokens):
            raise CollectorError(f"malformed name-status output near status {code!r}")
        entries.append((tokens[idx + width], status))
        idx += width + 1
    return entries


def list_staged(repo_root: Path) -> list[tuple[str, ChangeStatus]]:
    """List staged paths filtered to added, copied, modified and renamed."""
    out = _git(["diff", "--cached", "--name-status", "-z", "--diff-filter=ACMR"], repo_root)
    return parse_name_status(out.stdout)


def diff_lines(diff_text: str) -> list[str]:
    """Split diff output on LF only.

    ``str.splitlines`` also breaks on form feeds, vertical tabs, lone
    carriage returns and Unicode separators, which are legal inside one
    added line. A CRLF line loses only its final CR.
    """
    lines = diff_text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def extract_added_lines(diff_text: str) -> tuple[str, ...]:
    """Return net-new lines from a zero-context unified diff.

    The ``+++`` file header is not content and is skipped.
    """
    added: list[str] = []
    for line in diff_lines(diff_text):
        if line.startswith("+++"):
            continue
        if line.startswith("+"):
            added.append(line[1:])
    return tuple(added)


def added_lines(repo_root: Path, path: str) -> tuple[str, ...]:
    out = _git([*PATH_DIFF, "-U0", "--", path], repo_root)
    return extract_added_lines(out.stdout)


def is_binary_diff(repo_root: Path, path: str) -> bool:
    """Report whether git renders the staged diff of ``path`` as binary.

    The sentinel appears in the header block, before any hunk.
    """
    out = _git([*PATH_DIFF, "--", path], repo_root)
    for line in diff_lines(out.stdout):
        if line.startswith("@@"):
            return False
        if line.startswith(BINARY_SENTINEL) or line == "GIT binary patch":
            return True
    return False


def collect_staged_changes(repo_root: Path) -> list[StagedChange]:
    """Collect every staged change with its added lines, in index order."""
    changes: list[StagedChange] = []
    for path, status in list_staged(repo_root):
        lines = added_lines(repo_root, path)
        logger.debug("collected %s (%s): %d added line(s)", path, status.value, len(lines))
        changes.append(StagedChange(path=path, status=status, added_lines=lines))
    return changes
