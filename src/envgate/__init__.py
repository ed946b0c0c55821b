"""envgate - commit-time gate against leaked credentials in staged diffs."""

__version__ = "0.3.0"
