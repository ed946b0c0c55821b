"""Human approval overrides for detected violations.

Two providers exist: an environment flag that is re-read every run, and a
single-use marker file inside the git directory that is deleted once it
has approved a commit. The gate is only consulted when violations exist.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_ENV_VAR = "ALLOW_SECRET_COMMIT"
DEFAULT_MARKER_NAME = "secret-approval"
NOTE_MAX_LINES = 3


class ApprovalProvider(Protocol):
    """Source of an explicit override."""

    name: str

    def check(self) -> bool: ...

    def consume(self) -> None: ...

    def describe(self) -> str | None: ...


class EnvironmentApproval:
    """Approval via ``ALLOW_SECRET_COMMIT=1``; nothing to consume."""

    def __init__(self, environ: Mapping[str, str] | None = None, variable: str = DEFAULT_ENV_VAR) -> None:
        self.environ = os.environ if environ is None else environ
        self.variable = variable
        self.name = f"environment ({variable}=1)"

    def check(self) -> bool:
        return self.environ.get(self.variable) == "1"

    def consume(self) -> None:
        return None

    def describe(self) -> str | None:
        return None


class FileApproval:
    """Approval via a marker file; deleted after a successful override.

    The marker content is free text for humans (reviewer, reason) and is
    only surfaced in the report, never interpreted.
    """

    def __init__(self, marker_path: Path) -> None:
        self.marker_path = marker_path
        self.name = f"approval file ({marker_path})"

    def check(self) -> bool:
        return self.marker_path.is_file()

    def consume(self) -> None:
        self.marker_path.unlink(missing_ok=True)

    def describe(self) -> str | None:
        try:
            text = self.marker_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return "; ".join(lines[:NOTE_MAX_LINES]) or None


class GateState(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(frozen=True)
class GateDecision:
    """Result of a single gate check."""

    state: GateState
    source: str | None = None
    note: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def approved(self) -> bool:
        return self.state is GateState.APPROVED


class ApprovalGate:
    """Checks providers in order; the first approving provider is consumed."""

    def __init__(self, providers: Sequence[ApprovalProvider]) -> None:
        self.providers = tuple(providers)

    def check(self) -> GateDecision:
        for provider in self.providers:
            if not provider.check():
                continue

            note = provider.describe()
            warnings: list[str] = []
            try:
                provider.consume()
            except OSError as exc:
                # Approval stands; a lingering marker would approve a later commit.
                message = f"approval from {provider.name} could not be consumed: {exc}; remove it manually"
                logger.warning(message)
                warnings.append(message)
            logger.info("violations approved by %s", provider.name)
            return GateDecision(
                state=GateState.APPROVED,
                source=provider.name,
                note=note,
                warnings=tuple(warnings),
            )
        return GateDecision(state=GateState.DENIED)


def default_gate(
    git_dir: Path,
    *,
    environ: Mapping[str, str] | None = None,
    env_var: str = DEFAULT_ENV_VAR,
    marker_name: str = DEFAULT_MARKER_NAME,
) -> ApprovalGate:
    """Environment flag first, then the marker file, as the hook always has."""
    return ApprovalGate(
        [
            EnvironmentApproval(environ, variable=env_var),
            FileApproval(git_dir / marker_name),
        ]
    )


def write_marker(marker_path: Path, *, reviewer: str, reason: str | None = None) -> Path:
    """Create the single-use approval marker with human-readable content."""
    stamp = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    lines = [f"approved-by: {reviewer}", f"approved-at: {stamp}"]
    if reason:
        lines.append(f"reason: {reason}")
    marker_path.parent.mkdir(parents=True, exist_ok=True)
    marker_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return marker_path
