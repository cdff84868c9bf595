"""Per-file and per-run reports.

A ``FileReport`` is returned by every file pipeline; the caller builds one
``RunReport`` from the collected list. Reports render to JSON, plain text and
markdown and can be written to a report directory.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from robust_xhtml_repair.analysis import Issue, classify
from robust_xhtml_repair.shared import RunStatistics

REPORT_BASENAME = "xhtml-repair-report"
_EXTENSIONS = {"json": ".json", "text": ".txt", "markdown": ".md"}


class FileOutcome(Enum):
    """What happened to one file."""

    VALID = "valid"                         # no blocking issue found
    REPAIRED = "repaired"                   # fixes written and verified
    DRY_RUN = "dry_run"                     # fixes planned and verified, not written
    UNRESOLVED = "unresolved"               # blocking issues and nothing fixable
    REJECTED = "rejected"                   # repaired text failed verification, not written
    REVERTED = "reverted"                   # written, failed verification, restored
    PROCESSING_ERROR = "processing_error"   # I/O or decoding failure
    SKIPPED = "skipped"                     # run cancelled before the file started


_FAILED_OUTCOMES = frozenset({FileOutcome.REJECTED, FileOutcome.REVERTED})


@dataclass
class FileReport:
    """Result of processing one file."""

    path: str
    outcome: FileOutcome
    issues: List[Issue] = field(default_factory=list)
    issues_remaining: List[Issue] = field(default_factory=list)
    fixes_applied: int = 0
    applied: List[str] = field(default_factory=list)
    note: Optional[str] = None
    processing_error: Optional[str] = None
    processing_time_ms: float = 0.0

    @property
    def statistics(self) -> RunStatistics:
        """This file's contribution to the run summary."""
        if self.outcome is FileOutcome.SKIPPED:
            return RunStatistics()
        classification = classify(self.issues)
        return RunStatistics(
            files_processed=1,
            errors_found=len(classification.errors) + len(classification.fatal),
            warnings_found=len(classification.warnings),
            fixes_applied=self.fixes_applied if self.outcome is FileOutcome.REPAIRED else 0,
        )

    @property
    def has_unresolved_issues(self) -> bool:
        """True when blocking issues remain or a repair was refused."""
        if self.outcome in _FAILED_OUTCOMES:
            return True
        return classify(self.issues_remaining).has_blocking_issues

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "path": self.path,
            "outcome": self.outcome.value,
            "issues": [issue.to_dict() for issue in self.issues],
            "fixesApplied": self.fixes_applied,
            "issuesRemaining": [issue.to_dict() for issue in self.issues_remaining],
            "applied": list(self.applied),
            "processingTimeMs": round(self.processing_time_ms, 3),
        }
        if self.note:
            data["note"] = self.note
        if self.processing_error:
            data["processingError"] = self.processing_error
        return data


def _issue_line(issue: Issue) -> str:
    where = f"line {issue.line}" if issue.line is not None else "document"
    fixable = "fixable" if issue.fixable else "manual review"
    return f"[{issue.severity.value}] {issue.type.value} ({where}, {fixable}): {issue.message}"


@dataclass
class RunReport:
    """Aggregated result of one engine run."""

    files: List[FileReport] = field(default_factory=list)
    statistics: RunStatistics = field(default_factory=RunStatistics)
    correlation_id: Optional[str] = None
    cancelled: bool = False
    memory_usage_mb: float = 0.0
    generated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def from_file_reports(
        cls,
        reports: Iterable[FileReport],
        correlation_id: Optional[str] = None,
        cancelled: bool = False,
        memory_usage_mb: float = 0.0
    ) -> "RunReport":
        """Aggregate per-file reports, keeping their order."""
        files = list(reports)
        return cls(
            files=files,
            statistics=RunStatistics.merge(report.statistics for report in files),
            correlation_id=correlation_id,
            cancelled=cancelled,
            memory_usage_mb=memory_usage_mb,
        )

    def by_outcome(self, outcome: FileOutcome) -> List[FileReport]:
        return [report for report in self.files if report.outcome is outcome]

    @property
    def has_processing_errors(self) -> bool:
        return any(r.outcome is FileOutcome.PROCESSING_ERROR for r in self.files)

    @property
    def has_unresolved_issues(self) -> bool:
        return any(r.has_unresolved_issues for r in self.files)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.statistics.to_dict(),
            "files": [report.to_dict() for report in self.files],
            "correlationId": self.correlation_id,
            "cancelled": self.cancelled,
            "memoryUsageMb": round(self.memory_usage_mb, 1),
            "generatedAt": self.generated_at,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_text(self, max_issues_per_file: int = 3) -> str:
        """Human-readable report, one block per file.

        Args:
            max_issues_per_file: Issues listed per file before truncating
        """
        stats = self.statistics
        lines = [
            f"Processed {stats.files_processed} files: "
            f"{stats.errors_found} errors, {stats.warnings_found} warnings, "
            f"{stats.fixes_applied} fixes applied",
            "-" * 60,
        ]
        for report in self.files:
            status = "✗" if report.has_unresolved_issues or report.processing_error else "✓"
            lines.append(f"{status} {report.path} [{report.outcome.value}]")
            if report.processing_error:
                lines.append(f"   Error: {report.processing_error}")
            if report.note:
                lines.append(f"   Note: {report.note}")
            if report.fixes_applied:
                lines.append(f"   Fixes: {report.fixes_applied}")
            shown = report.issues_remaining
            for issue in shown[:max_issues_per_file]:
                lines.append(f"   {_issue_line(issue)}")
            if len(shown) > max_issues_per_file:
                lines.append(f"   ... and {len(shown) - max_issues_per_file} more issues")
            lines.append("")
        if self.cancelled:
            lines.append("Run cancelled; remaining files were skipped.")
        return "\n".join(lines)

    def to_markdown(self) -> str:
        """Markdown report with a summary table and per-file issue lists."""
        stats = self.statistics
        lines = [
            "# XHTML Structural Repair Report",
            "",
            f"Generated: {self.generated_at}",
            "",
            "| Files processed | Errors found | Warnings found | Fixes applied |",
            "| --- | --- | --- | --- |",
            f"| {stats.files_processed} | {stats.errors_found} | "
            f"{stats.warnings_found} | {stats.fixes_applied} |",
            "",
        ]
        for report in self.files:
            lines.append(f"## {report.path}")
            lines.append("")
            lines.append(f"- Outcome: `{report.outcome.value}`")
            lines.append(f"- Fixes applied: {report.fixes_applied}")
            if report.note:
                lines.append(f"- Note: {report.note}")
            if report.processing_error:
                lines.append(f"- Error: {report.processing_error}")
            for description in report.applied:
                lines.append(f"  - {description}")
            if report.issues_remaining:
                lines.append("")
                lines.append("| Line | Severity | Type | Message |")
                lines.append("| --- | --- | --- | --- |")
                for issue in report.issues_remaining:
                    message = issue.message.replace("|", "\\|")
                    lines.append(
                        f"| {issue.line or ''} | {issue.severity.value} | "
                        f"{issue.type.value} | {message} |"
                    )
            lines.append("")
        return "\n".join(lines)

    def render(self, fmt: str, max_issues_per_file: int = 3) -> str:
        if fmt == "json":
            return self.to_json()
        if fmt == "markdown":
            return self.to_markdown()
        if fmt == "text":
            return self.to_text(max_issues_per_file)
        raise ValueError(f"Unknown report format: {fmt}")

    def write(
        self,
        report_dir: Path,
        formats: Sequence[str] = ("json", "markdown"),
        max_issues_per_file: int = 3
    ) -> List[Path]:
        """Write the report in each format to ``report_dir``.

        Returns:
            Paths of the written report files
        """
        report_dir = Path(report_dir)
        report_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for fmt in formats:
            content = self.render(fmt, max_issues_per_file)
            target = report_dir / f"{REPORT_BASENAME}{_EXTENSIONS[fmt]}"
            target.write_text(content, encoding="utf-8")
            written.append(target)
        return written
