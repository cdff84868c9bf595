"""Validation-and-repair engine API with progressive disclosure.

Level 1 is a set of module functions (``validate_string``, ``repair_string``,
``process_path``); level 2 is the configurable ``RepairEngine``, which runs
the per-file pipeline scanner -> analyzer -> applier -> verification gate ->
backup/commit over a directory tree.
"""

import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import psutil

from robust_xhtml_repair.analysis import Issue, StructuralAnalyzer, classify
from robust_xhtml_repair.api.document import Document
from robust_xhtml_repair.api.report import FileOutcome, FileReport, RunReport
from robust_xhtml_repair.repair import (
    VERIFICATION_FAILED,
    BackupCoordinator,
    BackupError,
    RepairApplier,
    RepairResult,
    VerificationGate,
    VerificationResult,
)
from robust_xhtml_repair.scanning import MarkupScanner
from robust_xhtml_repair.shared import EngineConfig, get_logger

PathLike = Union[str, Path]
ProgressCallback = Callable[[FileReport], None]

MS_PER_SECOND = 1000
BYTES_PER_MB = 1024 * 1024


class CancellationToken:
    """Cooperative cancellation shared between a caller and a running engine.

    Files already inside their pipeline finish; files not yet started are
    reported as skipped.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def discover_files(
    root: PathLike,
    extensions: Sequence[str] = (".xhtml",),
    recursive: bool = True
) -> List[Path]:
    """Find documents under ``root`` in a stable order.

    Args:
        root: A file or directory
        extensions: Lowercase file suffixes to include
        recursive: Descend into subdirectories

    Returns:
        Sorted list of matching files; a file root is returned as-is
    """
    root = Path(root)
    if root.is_file():
        return [root]
    if not root.is_dir():
        return []
    pattern = "**/*" if recursive else "*"
    return sorted(
        path for path in root.glob(pattern)
        if path.is_file() and path.suffix.lower() in extensions
    )


class RepairEngine:
    """Configurable validation-and-repair engine.

    One engine instance serves one run: every component logs under the same
    correlation ID, and the instance can be shared by the worker threads of
    ``process_tree`` because it holds no per-file state.

    Examples:
        >>> engine = RepairEngine()
        >>> [issue.type.value for issue in engine.analyze("<div><p>text</div>")][-1]
        'unclosed_tag'

        >>> engine = RepairEngine(EngineConfig.audit_only())
        >>> report = engine.process_tree("OEBPS/")
        >>> report.statistics.files_processed
        12
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration (defaults to the balanced preset)
            correlation_id: Run identifier; a new UUID when omitted
        """
        self.config = config or EngineConfig.balanced()
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.logger = get_logger(__name__, self.correlation_id, "engine")

        self.scanner = MarkupScanner(self.config.scan, self.correlation_id)
        self.analyzer = StructuralAnalyzer(
            self.config.analysis, self.config.scan, self.correlation_id
        )
        self.applier = RepairApplier(
            self.config.repair, self.config.analysis, self.correlation_id
        )
        self.gate = VerificationGate(
            self.config.verification,
            self.config.analysis,
            self.config.scan,
            self.correlation_id,
        )
        self.coordinator = BackupCoordinator(
            self.config.repair.backup_suffix, self.correlation_id
        )

    def analyze(self, text: str) -> List[Issue]:
        """Scan and analyze document text."""
        return self.analyzer.analyze(self.scanner.scan(text))

    def repair(self, text: str, issues: Optional[List[Issue]] = None) -> RepairResult:
        """Apply every planned fix to ``text`` without verifying or writing."""
        if issues is None:
            issues = self.analyze(text)
        return self.applier.apply(text, issues)

    def verify(self, text: str) -> VerificationResult:
        return self.gate.verify(text)

    def process_document(self, document: Document) -> FileReport:
        """Run the in-memory part of the pipeline for one document.

        Nothing is written: an accepted repair is reported as ``repaired``
        (or ``dry_run``) with the repaired text left for the caller.
        """
        report, _ = self._evaluate(document)
        return report

    def _evaluate(self, document: Document) -> Tuple[FileReport, Optional[str]]:
        path = str(document.path) if document.path else document.name
        issues = self.analyze(document.text)
        report = FileReport(
            path=path,
            outcome=FileOutcome.VALID,
            issues=issues,
            issues_remaining=list(issues),
        )

        blocking = classify(issues).has_blocking_issues
        if not issues or not self.config.repair.enable_repair:
            if blocking:
                report.outcome = FileOutcome.UNRESOLVED
            return report, None

        result = self.applier.apply(document.text, issues)
        if result.fixes_applied == 0:
            report.issues_remaining = result.issues_remaining
            if blocking:
                report.outcome = FileOutcome.UNRESOLVED
            return report, None

        verification = self.gate.verify(result.content)
        if not verification.passed:
            report.outcome = FileOutcome.REJECTED
            report.note = verification.note
            self.logger.warning(
                "Repair rejected by verification",
                extra={"file_path": path, "parse_error": verification.parse_error}
            )
            return report, None

        report.outcome = (
            FileOutcome.DRY_RUN if self.config.repair.dry_run else FileOutcome.REPAIRED
        )
        report.fixes_applied = result.fixes_applied
        report.applied = list(result.applied)
        report.issues_remaining = verification.issues
        return report, result.content

    def process_file(
        self,
        path: PathLike,
        cancel: Optional[CancellationToken] = None
    ) -> FileReport:
        """Validate and, when configured, repair one file in place.

        I/O and decoding failures are reported as ``processing_error`` and
        never raised.
        """
        path = Path(path)
        if cancel is not None and cancel.cancelled:
            return FileReport(path=str(path), outcome=FileOutcome.SKIPPED)

        start_time = time.time()
        try:
            document = Document.from_path(path)
            report, repaired = self._evaluate(document)
            if repaired is not None and report.outcome is FileOutcome.REPAIRED:
                self._commit(path, repaired, report)
        except (OSError, UnicodeDecodeError, BackupError) as e:
            self.logger.error(
                "File processing failed",
                extra={"file_path": str(path), "error_type": type(e).__name__}
            )
            report = FileReport(
                path=str(path),
                outcome=FileOutcome.PROCESSING_ERROR,
                processing_error=f"{type(e).__name__}: {e}",
            )

        report.processing_time_ms = (time.time() - start_time) * MS_PER_SECOND
        self.logger.info(
            "File processed",
            extra={
                "file_path": str(path),
                "outcome": report.outcome.value,
                "issue_count": len(report.issues),
                "fixes_applied": report.fixes_applied,
            }
        )
        return report

    def _commit(self, path: Path, content: str, report: FileReport) -> None:
        if self.config.verification.verify_after_write:
            def verify(written: str) -> bool:
                return written == content and self.gate.verify(written).passed
        else:
            def verify(written: str) -> bool:
                return True

        record = self.coordinator.commit(path, content, verify)
        if record.restored:
            report.outcome = FileOutcome.REVERTED
            report.note = VERIFICATION_FAILED
            report.issues_remaining = list(report.issues)

    def process_tree(
        self,
        root: PathLike,
        cancel: Optional[CancellationToken] = None,
        progress: Optional[ProgressCallback] = None
    ) -> RunReport:
        """Process every matching file under ``root``.

        Args:
            root: File or directory to process
            cancel: Optional token to abandon files not yet started
            progress: Called once per finished file, from the calling thread

        Returns:
            RunReport with file reports in discovery order

        Raises:
            KeyboardInterrupt: Re-raised once the token is cancelled and files
                still queued have been abandoned
        """
        run = self.config.run
        files = discover_files(root, run.extensions, run.recursive)
        self.logger.info(
            "Starting run",
            extra={"root": str(root), "file_count": len(files), "max_workers": run.max_workers}
        )

        cancel = cancel or CancellationToken()
        reports: Dict[Path, FileReport] = {}
        if run.max_workers == 1 or len(files) <= 1:
            try:
                for path in files:
                    reports[path] = self.process_file(path, cancel)
                    if progress is not None:
                        progress(reports[path])
            except KeyboardInterrupt:
                self._abandon(cancel, [])
                raise
        else:
            with ThreadPoolExecutor(max_workers=run.max_workers) as executor:
                future_to_path = {
                    executor.submit(self.process_file, path, cancel): path
                    for path in files
                }
                try:
                    for future in as_completed(future_to_path):
                        path = future_to_path[future]
                        reports[path] = future.result()
                        if progress is not None:
                            progress(reports[path])
                except KeyboardInterrupt:
                    # Queued files must not start while the executor drains
                    self._abandon(cancel, list(future_to_path))
                    raise

        run_report = RunReport.from_file_reports(
            (reports[path] for path in files),
            correlation_id=self.correlation_id,
            cancelled=cancel.cancelled,
            memory_usage_mb=self._memory_usage_mb(),
        )
        self.logger.info(
            "Run completed",
            extra={
                **run_report.statistics.to_dict(),
                "memory_usage_mb": run_report.memory_usage_mb,
            }
        )
        return run_report

    def _abandon(self, cancel: CancellationToken, futures: List[Future]) -> None:
        cancel.cancel()
        abandoned = sum(1 for future in futures if future.cancel())
        self.logger.warning(
            "Run interrupted, abandoning queued files",
            extra={"files_abandoned": abandoned}
        )

    def _memory_usage_mb(self) -> float:
        """Resident memory of this process in megabytes."""
        try:
            return psutil.Process().memory_info().rss / BYTES_PER_MB
        except psutil.Error as e:
            self.logger.warning(f"Failed to get process memory info: {e}")
            return 0.0


def validate_string(text: str, config: Optional[EngineConfig] = None) -> List[Issue]:
    """Analyze document text and return its issues in scan order.

    Examples:
        >>> [issue.type.value for issue in validate_string("<p>Tom & Jerry</p>")][-1]
        'invalid_entity'
    """
    return RepairEngine(config).analyze(text)


def repair_string(text: str, config: Optional[EngineConfig] = None) -> RepairResult:
    """Repair document text in memory.

    The result is not verified; use ``RepairEngine.verify`` on
    ``result.content`` before trusting it.

    Examples:
        >>> repair_string('<div class=note>x</div>').content.endswith('<div class="note">x</div>')
        True
    """
    return RepairEngine(config).repair(text)


def process_path(
    path: PathLike,
    config: Optional[EngineConfig] = None,
    cancel: Optional[CancellationToken] = None
) -> RunReport:
    """Validate and repair a file or directory tree in place."""
    return RepairEngine(config).process_tree(path, cancel)
