"""Public engine API.

Simple functions for one-off use, the configurable ``RepairEngine`` for runs
over a directory tree, and the report objects both return.
"""

from .document import Document
from .engine import (
    CancellationToken,
    RepairEngine,
    discover_files,
    process_path,
    repair_string,
    validate_string,
)
from .report import (
    FileOutcome,
    FileReport,
    RunReport,
)

__all__ = [
    "Document",
    "CancellationToken",
    "RepairEngine",
    "discover_files",
    "process_path",
    "repair_string",
    "validate_string",
    "FileOutcome",
    "FileReport",
    "RunReport",
]
