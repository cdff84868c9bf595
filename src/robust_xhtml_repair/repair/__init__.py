"""Repair layer.

Plans fixes for classified issues, applies them to document text, verifies the
result and commits it to disk behind a backup.
"""

from .fixes import (
    FIX_PLANNERS,
    MANUAL_REVIEW_TYPES,
    Fix,
    FixPhase,
    plan_fix,
)
from .applier import (
    RepairApplier,
    RepairResult,
)
from .verification import (
    VERIFICATION_FAILED,
    VerificationGate,
    VerificationResult,
)
from .backup import (
    BackupCoordinator,
    BackupError,
    BackupState,
    CommitRecord,
    read_text,
    write_text,
)

__all__ = [
    "FIX_PLANNERS",
    "MANUAL_REVIEW_TYPES",
    "Fix",
    "FixPhase",
    "plan_fix",
    "RepairApplier",
    "RepairResult",
    "VERIFICATION_FAILED",
    "VerificationGate",
    "VerificationResult",
    "BackupCoordinator",
    "BackupError",
    "BackupState",
    "CommitRecord",
    "read_text",
    "write_text",
]
