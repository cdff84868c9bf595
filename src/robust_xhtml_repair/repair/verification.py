"""Verification gate for repaired content.

A repair is accepted only when re-analysis of the repaired text finds no fatal
issue. In strict mode the text must also parse with lxml.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from lxml import etree

from robust_xhtml_repair.analysis import Issue, StructuralAnalyzer
from robust_xhtml_repair.shared import (
    AnalysisConfig,
    ScanConfig,
    Severity,
    VerificationConfig,
    get_logger,
)

VERIFICATION_FAILED = "fix verification failed"


@dataclass
class VerificationResult:
    """Outcome of verifying one piece of content."""

    passed: bool
    issues: List[Issue] = field(default_factory=list)
    parse_error: Optional[str] = None

    @property
    def note(self) -> Optional[str]:
        return None if self.passed else VERIFICATION_FAILED

    @property
    def fatal_issues(self) -> List[Issue]:
        return [issue for issue in self.issues if issue.severity is Severity.FATAL]


class VerificationGate:
    """Re-analyzes content and rejects it while fatal issues remain."""

    def __init__(
        self,
        config: Optional[VerificationConfig] = None,
        analysis_config: Optional[AnalysisConfig] = None,
        scan_config: Optional[ScanConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        self.config = config or VerificationConfig()
        self.analyzer = StructuralAnalyzer(analysis_config, scan_config, correlation_id)
        self.logger = get_logger(__name__, correlation_id, "verification")

    def verify(self, content: str) -> VerificationResult:
        """Verify content.

        Args:
            content: Repaired document text

        Returns:
            VerificationResult; ``passed`` is False when a fatal issue remains
            or, in strict mode, when lxml rejects the text
        """
        issues = self.analyzer.analyze(content)
        result = VerificationResult(
            passed=not any(issue.severity is Severity.FATAL for issue in issues),
            issues=issues,
        )

        if result.passed and self.config.strict_parse:
            result.parse_error = self._parse_error(content)
            result.passed = result.parse_error is None

        if not result.passed:
            self.logger.info(
                "Verification rejected content",
                extra={
                    "fatal_count": len(result.fatal_issues),
                    "parse_error": result.parse_error,
                }
            )
        return result

    @staticmethod
    def _parse_error(content: str) -> Optional[str]:
        # Parsers are not shared between threads
        parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)
        try:
            etree.fromstring(content.encode("utf-8"), parser=parser)
        except etree.XMLSyntaxError as e:
            return str(e)
        return None
