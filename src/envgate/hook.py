"""pre-commit hook wiring.

The hook script is edited through a marked block so that existing hook
content is preserved and re-installs are idempotent.
"""

from __future__ import annotations

import difflib
import os
import stat
from dataclasses import dataclass
from pathlib import Path

from envgate.git.exec import ExecError, run_git

MARKER_BEGIN = "# >>> ENVGATE BEGIN >>>"
MARKER_END = "# <<< ENVGATE END <<<"
SHEBANG = "#!/usr/bin/env sh\n"


class HookError(RuntimeError):
    """Raised when the hook file cannot be edited safely."""


def render_block(command: str = "envgate check") -> str:
    lines = [
        MARKER_BEGIN,
        f"{command} || exit $?",
        MARKER_END,
        "",
    ]
    return "\n".join(lines)


def apply_managed_block(contents: str, *, block: str, remove: bool) -> tuple[str, bool]:
    begin_idx = contents.find(MARKER_BEGIN)
    end_idx = contents.find(MARKER_END)

    if begin_idx != -1 and contents.find(MARKER_BEGIN, begin_idx + len(MARKER_BEGIN)) != -1:
        raise HookError("Multiple ENVGATE begin markers found.")
    if end_idx != -1 and contents.find(MARKER_END, end_idx + len(MARKER_END)) != -1:
        raise HookError("Multiple ENVGATE end markers found.")

    if begin_idx == -1 and end_idx == -1:
        if remove:
            return contents, False
        if not contents:
            return SHEBANG + block, True
        prefix = "" if contents.endswith("\n") else "\n"
        return contents + prefix + block, True

    if begin_idx == -1:
        raise HookError("Malformed ENVGATE markers: begin marker missing.")
    if end_idx == -1:
        raise HookError("Malformed ENVGATE markers: end marker missing.")
    if end_idx < begin_idx:
        raise HookError("Malformed ENVGATE markers: markers found in wrong order (end before begin).")

    end_idx = end_idx + len(MARKER_END)

    before = contents[:begin_idx]
    after = contents[end_idx:]
    if remove:
        new_contents = (before.rstrip("\n") + "\n" + after.lstrip("\n")).rstrip("\n") + "\n"
        if new_contents.strip() in ("", SHEBANG.strip()):
            new_contents = ""
        return new_contents, new_contents != contents

    new_contents = before + block + after.lstrip("\n")
    return new_contents, new_contents != contents


def unified_diff(old: str, new: str, *, path: Path) -> str:
    diff = difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=str(path),
        tofile=str(path),
    )
    return "".join(diff)


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.envgate.tmp")
    tmp.write_text(content, encoding="utf-8")
    mode = tmp.stat().st_mode
    tmp.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    os.replace(tmp, path)


@dataclass(frozen=True)
class HookResult:
    path: Path
    changed: bool
    diff: str


def resolve_hooks_dir(repo_root: Path) -> Path:
    """Hooks directory as git sees it (honours core.hooksPath)."""
    try:
        out = run_git(["rev-parse", "--git-path", "hooks"], repo_root=repo_root).stdout.strip()
    except ExecError as exc:
        raise HookError(f"unable to locate hooks directory: {exc}") from exc
    hooks = Path(out)
    return hooks if hooks.is_absolute() else (repo_root / hooks).resolve()


def install_hook(*, hooks_dir: Path, remove: bool = False, dry_run: bool = False) -> HookResult:
    """Add (or remove) the envgate block in ``hooks_dir/pre-commit``."""
    path = hooks_dir / "pre-commit"
    try:
        old = path.read_text(encoding="utf-8") if path.exists() else ""
    except (OSError, UnicodeDecodeError) as exc:
        raise HookError(f"unable to read {path}: {exc}") from exc

    new, changed = apply_managed_block(old, block=render_block(), remove=remove)
    diff = unified_diff(old, new, path=path)
    if dry_run or not changed:
        return HookResult(path=path, changed=changed, diff=diff)

    try:
        if remove and not new:
            path.unlink()
        else:
            _atomic_write(path, new)
    except OSError as exc:
        raise HookError(f"unable to write {path}: {exc}") from exc
    return HookResult(path=path, changed=changed, diff=diff)
