"""Issue classification.

Partitions an issue list by fixability and severity. Pure: the input list is
never modified and no issue is dropped.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from robust_xhtml_repair.analysis.issues import Issue
from robust_xhtml_repair.shared import Severity


@dataclass
class IssueClassification:
    """Issues bucketed by fixability and by severity."""

    issues: List[Issue] = field(default_factory=list)
    fixable: List[Issue] = field(default_factory=list)
    unfixable: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)
    errors: List[Issue] = field(default_factory=list)
    fatal: List[Issue] = field(default_factory=list)

    @property
    def has_blocking_issues(self) -> bool:
        """True when any error or fatal issue is present."""
        return bool(self.errors or self.fatal)

    @property
    def has_fatal_issues(self) -> bool:
        return bool(self.fatal)

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "total": len(self.issues),
            "fixable": len(self.fixable),
            "unfixable": len(self.unfixable),
            Severity.WARNING.value: len(self.warnings),
            Severity.ERROR.value: len(self.errors),
            Severity.FATAL.value: len(self.fatal),
        }


def classify(issues: Iterable[Issue]) -> IssueClassification:
    """Partition issues into fixable/unfixable and severity buckets.

    Args:
        issues: Issues in scan order

    Returns:
        IssueClassification whose buckets keep scan order
    """
    classification = IssueClassification()
    buckets = {
        Severity.WARNING: classification.warnings,
        Severity.ERROR: classification.errors,
        Severity.FATAL: classification.fatal,
    }
    for issue in issues:
        classification.issues.append(issue)
        if issue.fixable:
            classification.fixable.append(issue)
        else:
            classification.unfixable.append(issue)
        buckets[issue.severity].append(issue)
    return classification
