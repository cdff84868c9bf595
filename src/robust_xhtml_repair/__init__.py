"""Robust XHTML Repair.

Structural validation and repair for XHTML content documents: detects missing
declarations, unbalanced tags, malformed attributes, invalid entities and
corrupted quoting, and applies targeted repairs that are verified before they
are written.

Progressive API Disclosure:
- Level 1: Simple functions - validate_string(), repair_string(), process_path()
- Level 2: Configured engine - RepairEngine class with EngineConfig presets
- Level 3: Components - scanner, analyzer, applier and gate from the subpackages
"""

__version__ = "0.1.0"
__author__ = "Robust XHTML Repair Team"

# Progressive API disclosure - Level 1: Simple functions
# Progressive API disclosure - Level 2: Configured engine
from .api import (
    CancellationToken,
    Document,
    FileOutcome,
    FileReport,
    RepairEngine,
    RunReport,
    process_path,
    repair_string,
    validate_string,
)

# Issue model for inspecting results
from .analysis import Issue, IssueType

# Configuration classes for advanced usage
from .shared import EngineConfig, RunStatistics, Severity

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple functions (progressive disclosure entry point)
    "validate_string",
    "repair_string",
    "process_path",

    # Level 2: Configured engine
    "RepairEngine",
    "CancellationToken",

    # Result objects and data structures
    "Document",
    "FileOutcome",
    "FileReport",
    "RunReport",
    "RunStatistics",
    "Issue",
    "IssueType",
    "Severity",

    # Configuration classes for advanced usage
    "EngineConfig",
]
