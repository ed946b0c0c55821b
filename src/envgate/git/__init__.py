"""Git collaborator access for envgate."""

from envgate.git.exec import ExecError, ExecResult, run_git
from envgate.git.staged import (
    ChangeStatus,
    CollectorError,
    StagedChange,
    collect_staged_changes,
    resolve_git_dir,
    resolve_repo_root,
)

__all__ = [
    "ChangeStatus",
    "CollectorError",
    "ExecError",
    "ExecResult",
    "StagedChange",
    "collect_staged_changes",
    "resolve_git_dir",
    "resolve_repo_root",
    "run_git",
]
