"""Severity levels and run statistics shared by every processing layer."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable


class Severity(Enum):
    """Severity of a structural issue.

    Values are the lowercase names used in reports.
    """

    WARNING = "warning"   # Partial conformance, document still usable
    ERROR = "error"       # Conformance violation with a known repair
    FATAL = "fatal"       # Structure integrity broken

    @property
    def is_blocking(self) -> bool:
        """Error and fatal issues make a document invalid."""
        return self is not Severity.WARNING


@dataclass(frozen=True)
class RunStatistics:
    """Run-level counters.

    Each file pipeline returns its own statistics value; the caller merges them
    with ``+`` once all results are collected.
    """

    files_processed: int = 0
    errors_found: int = 0
    warnings_found: int = 0
    fixes_applied: int = 0

    def __post_init__(self) -> None:
        """Validate counters."""
        for name in ("files_processed", "errors_found", "warnings_found", "fixes_applied"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    def __add__(self, other: "RunStatistics") -> "RunStatistics":
        if not isinstance(other, RunStatistics):
            return NotImplemented
        return RunStatistics(
            files_processed=self.files_processed + other.files_processed,
            errors_found=self.errors_found + other.errors_found,
            warnings_found=self.warnings_found + other.warnings_found,
            fixes_applied=self.fixes_applied + other.fixes_applied,
        )

    @classmethod
    def merge(cls, items: Iterable["RunStatistics"]) -> "RunStatistics":
        """Sum an iterable of statistics."""
        total = cls()
        for item in items:
            total = total + item
        return total

    def to_dict(self) -> Dict[str, int]:
        """Report form with camelCase keys."""
        return {
            "filesProcessed": self.files_processed,
            "errorsFound": self.errors_found,
            "warningsFound": self.warnings_found,
            "fixesApplied": self.fixes_applied,
        }
