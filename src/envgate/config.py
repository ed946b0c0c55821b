"""Repository configuration loader.

Supports ``.envgate.toml`` or ``.envgate.json`` at the repository root
for extending scope lists, swapping the rule registry, and tuning the
approval sources.
"""

import json

# Use tomllib for 3.11+
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from envgate.approval import DEFAULT_ENV_VAR, DEFAULT_MARKER_NAME

CONFIG_TOML = ".envgate.toml"
CONFIG_JSON = ".envgate.json"


class ConfigError(RuntimeError):
    """Raised when a repository config file is malformed."""


def _str_list(value: Any, key: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{key} must be a list of strings")
    return tuple(value)


@dataclass(frozen=True)
class ScanConfig:
    """Scope extensions and output detail."""

    extra_text_extensions: tuple[str, ...] = ()
    extra_template_suffixes: tuple[str, ...] = ()
    show_context: bool = False


@dataclass(frozen=True)
class RulesConfig:
    """Registry location and per-rule case sensitivity."""

    file: str | None = None
    case_sensitive: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class ApprovalConfig:
    """Override sources."""

    env_var: str = DEFAULT_ENV_VAR
    marker: str = DEFAULT_MARKER_NAME


@dataclass(frozen=True)
class GateConfig:
    """Complete envgate configuration for one repository."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    approval: ApprovalConfig = field(default_factory=ApprovalConfig)
    source: Path | None = None

    @classmethod
    def from_dict(cls, data: dict, source: Path | None = None) -> "GateConfig":
        """Parse and validate config dict into GateConfig."""
        scan_data = data.get("scan", {})
        scan = ScanConfig(
            extra_text_extensions=_str_list(scan_data.get("extra_text_extensions", []), "scan.extra_text_extensions"),
            extra_template_suffixes=_str_list(
                scan_data.get("extra_template_suffixes", []), "scan.extra_template_suffixes"
            ),
            show_context=bool(scan_data.get("show_context", False)),
        )

        rules_data = data.get("rules", {})
        case_sensitive = rules_data.get("case_sensitive", {})
        if not isinstance(case_sensitive, dict) or not all(isinstance(v, bool) for v in case_sensitive.values()):
            raise ValueError("rules.case_sensitive must map rule ids to booleans")
        rules_file = rules_data.get("file")
        if rules_file is not None and not isinstance(rules_file, str):
            raise ValueError("rules.file must be a string path")
        rules = RulesConfig(file=rules_file, case_sensitive=dict(case_sensitive))

        approval_data = data.get("approval", {})
        approval = ApprovalConfig(
            env_var=str(approval_data.get("env_var", DEFAULT_ENV_VAR)),
            marker=str(approval_data.get("marker", DEFAULT_MARKER_NAME)),
        )
        if not approval.env_var or not approval.marker:
            raise ValueError("approval.env_var and approval.marker must be non-empty")
        if Path(approval.marker).is_absolute() or ".." in Path(approval.marker).parts:
            raise ValueError("approval.marker must be a path inside the git directory")

        return cls(scan=scan, rules=rules, approval=approval, source=source)

    def rules_path(self, repo_root: Path) -> Path | None:
        if self.rules.file is None:
            return None
        candidate = Path(self.rules.file)
        return candidate if candidate.is_absolute() else repo_root / candidate


def load_config(repo_root: Path) -> GateConfig:
    """Load configuration from .envgate.toml or .envgate.json.

    Priority order:
    1. .envgate.toml (preferred)
    2. .envgate.json (fallback)

    Args:
        repo_root: Repository root directory

    Returns:
        GateConfig from the first file found, or defaults when none exists

    Raises:
        ConfigError: If config file is malformed or invalid
    """
    # Try TOML first
    toml_path = repo_root / CONFIG_TOML
    if toml_path.exists():
        try:
            with open(toml_path, "rb") as f:
                data = tomllib.load(f)
            return GateConfig.from_dict(data, source=toml_path)
        except OSError as e:
            raise ConfigError(
                f"Unable to read config at {toml_path}: {e}"
            ) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(
                f"Malformed TOML config at {toml_path}: {e}"
            ) from e
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid config structure in {toml_path}: {e}"
            ) from e

    # Try JSON fallback
    json_path = repo_root / CONFIG_JSON
    if json_path.exists():
        try:
            with open(json_path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError("top-level JSON value must be an object")
            return GateConfig.from_dict(data, source=json_path)
        except OSError as e:
            raise ConfigError(
                f"Unable to read config at {json_path}: {e}"
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Malformed JSON config at {json_path}: {e}"
            ) from e
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid config structure in {json_path}: {e}"
            ) from e

    return GateConfig()
