"""Per-file scope decisions: template exemption, text-likeness, env targets."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ENV_BASENAME = ".env"

TEMPLATE_SUFFIXES: tuple[str, ...] = ("example", "sample", "template", "dist")

TEXT_EXTENSIONS: tuple[str, ...] = (
    "env",
    "txt",
    "json",
    "yml",
    "yaml",
    "toml",
    "ini",
    "conf",
    "cfg",
    "js",
    "ts",
    "tsx",
    "jsx",
    "php",
    "rb",
    "py",
    "go",
    "rs",
    "java",
    "kt",
    "cs",
    "c",
    "h",
    "cpp",
    "hpp",
    "md",
)

ENV_TARGET_RE = re.compile(r"(^|/)\.env($|[./])")

BinaryProbe = Callable[[str], bool]


@dataclass(frozen=True)
class FileClassification:
    """Scope flags for one staged path."""

    exempt: bool
    in_scope: bool
    is_env_target: bool


def _alternation(items: Iterable[str]) -> str:
    unique = sorted({item.strip().lstrip(".") for item in items if item.strip()})
    if not unique:
        raise ValueError("at least one entry is required")
    return "|".join(re.escape(item) for item in unique)


class FileClassifier:
    """Ordered scope predicates for staged paths.

    ``classify`` only consults the binary probe when the path carries no
    known text extension. A probe failure keeps the file in scope.
    """

    def __init__(
        self,
        *,
        extra_text_extensions: Iterable[str] = (),
        extra_template_suffixes: Iterable[str] = (),
    ) -> None:
        self.text_extensions = tuple(TEXT_EXTENSIONS) + tuple(extra_text_extensions)
        self.template_suffixes = tuple(TEMPLATE_SUFFIXES) + tuple(extra_template_suffixes)
        self._template_re = re.compile(
            rf"(^|/)\.env\.({_alternation(self.template_suffixes)})(\.|$)"
        )
        self._text_re = re.compile(rf"\.({_alternation(self.text_extensions)})$")

    def is_template(self, path: str) -> bool:
        return self._template_re.search(path) is not None

    def has_text_extension(self, path: str) -> bool:
        return self._text_re.search(path) is not None

    def is_text_like(self, path: str, binary_probe: BinaryProbe) -> bool:
        if self.has_text_extension(path):
            return True
        try:
            return not binary_probe(path)
        except RuntimeError as exc:
            logger.warning("binary probe failed for %s, scanning as text: %s", path, exc)
            return True

    @staticmethod
    def is_env_target(path: str) -> bool:
        return ENV_TARGET_RE.search(path) is not None

    def classify(self, path: str, binary_probe: BinaryProbe) -> FileClassification:
        if self.is_template(path):
            logger.debug("%s: template env file, exempt", path)
            return FileClassification(exempt=True, in_scope=False, is_env_target=False)

        in_scope = self.is_text_like(path, binary_probe)
        if not in_scope:
            logger.debug("%s: binary content, out of scope", path)
            return FileClassification(exempt=False, in_scope=False, is_env_target=False)

        return FileClassification(exempt=False, in_scope=True, is_env_target=self.is_env_target(path))
