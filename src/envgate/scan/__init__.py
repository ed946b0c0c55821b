"""Classification and rule evaluation for staged files."""

from envgate.scan.classifier import FileClassification, FileClassifier
from envgate.scan.engine import CheckLine, FileOutcome, Violation, evaluate
from envgate.scan.rules import PatternRule, RegistryError, RuleCategory, RuleRegistry, load_registry

__all__ = [
    "CheckLine",
    "FileClassification",
    "FileClassifier",
    "FileOutcome",
    "PatternRule",
    "RegistryError",
    "RuleCategory",
    "RuleRegistry",
    "Violation",
    "evaluate",
    "load_registry",
]
