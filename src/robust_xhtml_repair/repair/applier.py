"""Repair application.

Applies planned fixes to document text in a deterministic order. Positional
fixes run first from the bottom of the document upwards, so an edit never
moves the anchor of a fix still waiting to run; declaration fixes run last
through anchor patterns. Application has no side effects.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from robust_xhtml_repair.analysis.classifier import classify
from robust_xhtml_repair.analysis.issues import Issue
from robust_xhtml_repair.repair.fixes import Fix, FixPhase, plan_fix
from robust_xhtml_repair.shared import AnalysisConfig, RepairConfig, get_logger

_DECLARATION_PHASES = (FixPhase.NAMESPACE, FixPhase.DOCTYPE, FixPhase.PROLOG)


@dataclass
class RepairResult:
    """Outcome of applying fixes to one document."""

    content: str
    fixes_applied: int = 0
    issues_remaining: List[Issue] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.fixes_applied > 0


class RepairApplier:
    """Plans and applies fixes for a list of issues."""

    def __init__(
        self,
        config: Optional[RepairConfig] = None,
        analysis_config: Optional[AnalysisConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Initialize the applier.

        Args:
            config: Repair configuration (disabled fix kinds)
            analysis_config: Supplies the namespace and prolog values fixes insert
            correlation_id: Optional run identifier for logging
        """
        self.config = config or RepairConfig()
        self.analysis_config = analysis_config or AnalysisConfig()
        self.logger = get_logger(__name__, correlation_id, "applier")

    def plan(self, issues: Iterable[Issue]) -> Tuple[List[Fix], List[Issue]]:
        """Split issues into planned fixes and issues left for manual review.

        Unfixable issues come first in the second list, followed by fixable
        ones whose kind is disabled or has no planned fix.
        """
        classification = classify(issues)
        fixes: List[Fix] = []
        unplanned: List[Issue] = list(classification.unfixable)
        for issue in classification.fixable:
            fix = None
            if issue.type.value not in self.config.disabled_fixes:
                fix = plan_fix(issue, self.analysis_config)
            if fix is None:
                unplanned.append(issue)
            else:
                fixes.append(fix)
        return fixes, unplanned

    def apply(self, content: str, issues: Iterable[Issue]) -> RepairResult:
        """Apply every planned fix to ``content``.

        Args:
            content: Document text the issues were found in
            issues: Issues in scan order

        Returns:
            RepairResult with the repaired text; issues whose fix was not
            planned or whose target had disappeared are kept in
            ``issues_remaining``
        """
        fixes, remaining = self.plan(issues)
        result = RepairResult(content=content, issues_remaining=remaining)

        positional = sorted(
            (fix for fix in fixes if fix.phase is FixPhase.POSITIONAL),
            key=lambda fix: fix.position,
            reverse=True,
        )
        ordered = positional + [
            fix for phase in _DECLARATION_PHASES
            for fix in fixes if fix.phase is phase
        ]

        for fix in ordered:
            updated = fix.apply(result.content)
            if updated is None or updated == result.content:
                self.logger.debug(
                    "Fix target not found, skipping",
                    extra={"issue_type": fix.issue.type.value, "line": fix.issue.line}
                )
                result.issues_remaining.append(fix.issue)
                continue
            result.content = updated
            result.fixes_applied += 1
            result.applied.append(fix.description)

        self.logger.debug(
            "Fixes applied",
            extra={
                "fixes_planned": len(fixes),
                "fixes_applied": result.fixes_applied,
                "issues_remaining": len(result.issues_remaining),
            }
        )
        return result
