"""Main CLI entry point for the robust-xhtml command-line tool.

Provides the ``validate`` and ``repair`` commands over XHTML files and
directory trees, with progress display, report files and exit codes suitable
for build pipelines.
"""

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional

from robust_xhtml_repair import __version__
from robust_xhtml_repair.api import (
    FileReport,
    RepairEngine,
    RunReport,
    discover_files,
)
from robust_xhtml_repair.shared import (
    ConfigError,
    EngineConfig,
    configure_logging,
    get_logger,
)
from robust_xhtml_repair.shared.config import VALID_REPORT_FORMATS

EXIT_OK = 0
EXIT_UNRESOLVED = 1
EXIT_ENGINE_ERROR = 2
EXIT_INTERRUPTED = 130  # Standard exit code for SIGINT

PRESETS = ["audit_only", "balanced", "strict"]


class ProgressTracker:
    """Progress tracking for long-running operations."""

    def __init__(self, total: int, description: str = "Processing"):
        self.total = total
        self.completed = 0
        self.description = description
        self.start_time = time.time()
        self.last_update = 0.0

    def update(self, report: Optional[FileReport] = None, increment: int = 1) -> None:
        """Update progress and display if needed."""
        self.completed += increment
        current_time = time.time()

        # Update every second or on completion
        if current_time - self.last_update >= 1.0 or self.completed >= self.total:
            self._display_progress()
            self.last_update = current_time

    def _display_progress(self) -> None:
        if self.total == 0:
            return

        percentage = (self.completed / self.total) * 100
        elapsed = time.time() - self.start_time

        if self.completed > 0 and elapsed > 0:
            rate = self.completed / elapsed
            eta = (self.total - self.completed) / rate if rate > 0 else 0
            eta_str = f", ETA: {eta:.0f}s" if eta > 0 else ""
        else:
            eta_str = ""

        progress_bar = "=" * int(percentage // 2)
        progress_bar += " " * (50 - len(progress_bar))

        print(f"\r{self.description}: [{progress_bar}] "
              f"{percentage:.1f}% ({self.completed}/{self.total}){eta_str}",
              end="", file=sys.stderr)

        if self.completed >= self.total:
            print(file=sys.stderr)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="robust-xhtml",
        description="Structural validation and repair for XHTML content documents"
    )

    parser.add_argument("--version", action="version", version=__version__)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser(
        "validate", help="Report structural issues without modifying files"
    )
    repair_parser = subparsers.add_parser(
        "repair", help="Repair fixable issues in place behind a verified backup"
    )
    repair_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan and verify repairs without writing any file"
    )

    for command_parser in (validate_parser, repair_parser):
        command_parser.add_argument(
            "path",
            type=Path,
            help="XHTML file or directory to process"
        )
        command_parser.add_argument(
            "--format", "-f",
            choices=VALID_REPORT_FORMATS,
            default="text",
            help="Output format (default: text)"
        )
        command_parser.add_argument(
            "--output", "-o",
            type=Path,
            help="Output file (default: stdout)"
        )
        command_parser.add_argument(
            "--config", "-c",
            type=Path,
            help="JSON configuration file"
        )
        command_parser.add_argument(
            "--preset",
            choices=PRESETS,
            default="balanced",
            help="Engine configuration preset (default: balanced)"
        )
        command_parser.add_argument(
            "--workers", "-w",
            type=int,
            help="Number of files processed in parallel"
        )
        command_parser.add_argument(
            "--report-dir",
            type=Path,
            help="Directory for JSON and markdown report files"
        )
        command_parser.add_argument(
            "--progress",
            action="store_true",
            help="Show progress on stderr"
        )

    # Global options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Quiet output"
    )

    return parser


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build the engine configuration from a config file or preset plus flags.

    Raises:
        ConfigError: If the configuration file is unreadable or invalid
    """
    if args.config is not None:
        try:
            config = EngineConfig.from_json(args.config.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Could not read config file {args.config}: {e}") from e
    else:
        config = EngineConfig.preset(args.preset)

    overrides = {}
    if args.command == "validate":
        overrides["repair__enable_repair"] = False
        overrides["repair__dry_run"] = False
    elif args.dry_run:
        overrides["repair__enable_repair"] = True
        overrides["repair__dry_run"] = True
    if args.workers is not None:
        overrides["run__max_workers"] = args.workers
    if args.report_dir is not None:
        overrides["report__report_dir"] = str(args.report_dir)
    if args.verbose:
        overrides["logging_level"] = "DEBUG"
    elif args.quiet:
        overrides["logging_level"] = "ERROR"
    return config.override(**overrides) if overrides else config


def format_report(report: RunReport, format_type: str, max_issues_per_file: int = 3) -> str:
    """Format a run report for output."""
    if format_type == "json":
        return report.to_json()
    if format_type == "markdown":
        return report.to_markdown()
    if not report.files:
        return "No XHTML files found."
    return report.to_text(max_issues_per_file)


def determine_exit_code(report: RunReport) -> int:
    """Map a run report to the process exit code.

    0 when every file is valid (warnings allowed), 1 when a file keeps error or
    fatal issues or a repair was rejected or reverted, 2 on processing errors.
    """
    if report.has_processing_errors:
        return EXIT_ENGINE_ERROR
    if report.has_unresolved_issues:
        return EXIT_UNRESOLVED
    return EXIT_OK


def cmd_run(args: argparse.Namespace) -> int:
    """Handle the validate and repair commands."""
    logger = get_logger(__name__, None, "cli")

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ENGINE_ERROR
    configure_logging(config.logging_level)

    if not args.path.exists():
        print(f"Path not found: {args.path}", file=sys.stderr)
        return EXIT_ENGINE_ERROR

    engine = RepairEngine(config)
    progress = None
    if args.progress:
        total = len(discover_files(args.path, config.run.extensions, config.run.recursive))
        description = "Validating" if args.command == "validate" else "Repairing"
        progress = ProgressTracker(total, f"{description} XHTML files").update

    try:
        report = engine.process_tree(args.path, progress=progress)
    except KeyboardInterrupt:
        print("\nProcessing interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Unexpected engine error", extra={"error_type": type(e).__name__})
        print(f"Engine error: {e}", file=sys.stderr)
        return EXIT_ENGINE_ERROR

    formatted_output = format_report(report, args.format, config.report.max_issues_per_file)
    if args.output:
        try:
            args.output.write_text(formatted_output, encoding="utf-8")
            print(f"Results written to {args.output}", file=sys.stderr)
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            return EXIT_ENGINE_ERROR
    else:
        print(formatted_output)

    if config.report.report_dir:
        try:
            written = report.write(
                Path(config.report.report_dir),
                config.report.formats,
                config.report.max_issues_per_file,
            )
        except OSError as e:
            print(f"Error writing reports: {e}", file=sys.stderr)
            return EXIT_ENGINE_ERROR
        logger.info("Reports written", extra={"reports": [str(p) for p in written]})

    return determine_exit_code(report)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ENGINE_ERROR

    try:
        if args.command in ("validate", "repair"):
            return cmd_run(args)
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return EXIT_ENGINE_ERROR

    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        get_logger(__name__, None, "cli").exception("Command failed")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ENGINE_ERROR


if __name__ == "__main__":
    sys.exit(main())
