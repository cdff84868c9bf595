"""Shared utilities for XHTML structural validation and repair.

This module provides the configuration objects, severity levels, run statistics
and logging helpers used across all processing layers.
"""

from .result import (
    RunStatistics,
    Severity,
)
from .config import (
    CANONICAL_DOCTYPE,
    CANONICAL_PROLOG,
    VOID_ELEMENTS,
    XHTML_NAMESPACE,
    AnalysisConfig,
    ConfigError,
    ConfigValidationError,
    EngineConfig,
    RepairConfig,
    ReportConfig,
    RunConfig,
    ScanConfig,
    VerificationConfig,
)
from .logging import (
    CorrelationLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "RunStatistics",
    "Severity",
    "CANONICAL_DOCTYPE",
    "CANONICAL_PROLOG",
    "VOID_ELEMENTS",
    "XHTML_NAMESPACE",
    "AnalysisConfig",
    "ConfigError",
    "ConfigValidationError",
    "EngineConfig",
    "RepairConfig",
    "ReportConfig",
    "RunConfig",
    "ScanConfig",
    "VerificationConfig",
    "CorrelationLogger",
    "configure_logging",
    "get_logger",
]
