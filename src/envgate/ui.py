"""Console and logging setup for envgate."""

from __future__ import annotations

import logging
import os

from rich.console import Console

LOG_FORMAT = "envgate %(levelname)s %(name)s: %(message)s"


def color_enabled() -> bool:
    if "NO_COLOR" in os.environ:
        return False
    return os.getenv("ENVGATE_COLOR", "1") == "1"


def get_log_level(verbose: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    name = os.getenv("ENVGATE_LOG_LEVEL", "WARNING").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(verbose: bool = False) -> None:
    """Send diagnostics to stderr; stdout is reserved for the report."""
    if not verbose and "ENVGATE_LOG_LEVEL" not in os.environ:
        return
    logging.basicConfig(level=get_log_level(verbose), format=LOG_FORMAT, force=True)


def make_console(*, stderr: bool = False) -> Console:
    return Console(stderr=stderr, no_color=not color_enabled(), highlight=False, soft_wrap=True)
