"""Tests for the robust-xhtml command-line interface."""

import json
from unittest.mock import patch

import pytest

from robust_xhtml_repair.api import FileOutcome, FileReport, RepairEngine, RunReport
from robust_xhtml_repair.cli.main import (
    EXIT_ENGINE_ERROR,
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_UNRESOLVED,
    ProgressTracker,
    build_config,
    create_argument_parser,
    determine_exit_code,
    format_report,
    main,
)
from robust_xhtml_repair.repair import read_text, write_text

CLEAN = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    "<!DOCTYPE html>\n"
    '<html xmlns="http://www.w3.org/1999/xhtml">\n'
    "<head><title>Chapter</title></head>\n"
    "<body>\n"
    '<p class="intro">Tom &amp; Jerry</p>\n'
    "</body>\n"
    "</html>\n"
)
MESSY = (
    "<html>\n"
    "<head><title>Chapter</title></head>\n"
    "<body>\n"
    "<div class=note>Tom & Jerry</div>\n"
    "<p>Fish &chips</p>\n"
)
MISMATCHED = CLEAN.replace('<p class="intro">Tom &amp; Jerry</p>', "<div><p>text</div>")


@pytest.fixture
def clean_dir(tmp_path):
    write_text(tmp_path / "a.xhtml", CLEAN)
    return tmp_path


@pytest.fixture
def messy_file(tmp_path):
    path = tmp_path / "chapter.xhtml"
    write_text(path, MESSY)
    return path


class TestArgumentParsing:
    """Test argument parsing and configuration building."""

    def test_defaults(self):
        args = create_argument_parser().parse_args(["validate", "OEBPS"])
        assert args.command == "validate"
        assert args.format == "text"
        assert args.preset == "balanced"
        assert args.workers is None

    def test_validate_disables_repair(self):
        args = create_argument_parser().parse_args(["validate", "OEBPS", "--preset", "strict"])
        config = build_config(args)
        assert config.repair.enable_repair is False
        assert config.verification.strict_parse is True

    def test_repair_overrides(self):
        args = create_argument_parser().parse_args(
            ["-v", "repair", "OEBPS", "--dry-run", "-w", "4", "--report-dir", "out"]
        )
        config = build_config(args)
        assert config.repair.dry_run is True
        assert config.run.max_workers == 4
        assert config.report.report_dir == "out"
        assert config.logging_level == "DEBUG"

    def test_quiet(self):
        args = create_argument_parser().parse_args(["-q", "repair", "OEBPS"])
        assert build_config(args).logging_level == "ERROR"

    def test_config_file(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"run": {"max_workers": 2}}), encoding="utf-8")
        args = create_argument_parser().parse_args(["repair", "OEBPS", "-c", str(config_path)])
        assert build_config(args).run.max_workers == 2


class TestCommands:
    """Test the validate and repair commands end to end."""

    def test_validate_clean(self, clean_dir, capsys):
        assert main(["validate", str(clean_dir)]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("Processed 1 files: 0 errors, 0 warnings, 0 fixes applied")

    def test_validate_reports_without_writing(self, messy_file):
        assert main(["validate", str(messy_file)]) == EXIT_UNRESOLVED
        assert read_text(messy_file) == MESSY

    def test_repair(self, messy_file, capsys):
        assert main(["repair", str(messy_file)]) == EXIT_OK
        assert read_text(messy_file).startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert "[repaired]" in capsys.readouterr().out

    def test_dry_run(self, messy_file, capsys):
        assert main(["repair", str(messy_file), "--dry-run"]) == EXIT_OK
        assert read_text(messy_file) == MESSY
        assert "[dry_run]" in capsys.readouterr().out

    def test_unresolvable_document(self, tmp_path):
        write_text(tmp_path / "bad.xhtml", MISMATCHED)
        assert main(["repair", str(tmp_path)]) == EXIT_UNRESOLVED

    def test_json_output(self, messy_file, capsys):
        assert main(["validate", str(messy_file), "--format", "json"]) == EXIT_UNRESOLVED
        data = json.loads(capsys.readouterr().out)
        assert data["summary"]["filesProcessed"] == 1
        assert data["files"][0]["outcome"] == "unresolved"

    def test_output_file(self, clean_dir, capsys):
        output = clean_dir / "report.md"
        assert main(["validate", str(clean_dir), "-f", "markdown", "-o", str(output)]) == EXIT_OK
        assert output.read_text(encoding="utf-8").startswith("# XHTML Structural Repair Report")
        assert "Results written to" in capsys.readouterr().err

    def test_report_dir(self, messy_file, tmp_path):
        report_dir = tmp_path / "reports"
        assert main(["repair", str(messy_file), "--report-dir", str(report_dir)]) == EXIT_OK
        assert sorted(p.name for p in report_dir.iterdir()) == [
            "xhtml-repair-report.json",
            "xhtml-repair-report.md",
        ]

    def test_progress(self, messy_file, capsys):
        assert main(["repair", str(messy_file), "--progress"]) == EXIT_OK
        assert "Repairing XHTML files" in capsys.readouterr().err

    def test_empty_directory(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path)]) == EXIT_OK
        assert "No XHTML files found." in capsys.readouterr().out


class TestErrorHandling:
    """Test engine error exit codes."""

    def test_missing_path(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path / "missing")]) == EXIT_ENGINE_ERROR
        assert "Path not found" in capsys.readouterr().err

    def test_invalid_config(self, tmp_path, capsys):
        config_path = tmp_path / "config.json"
        config_path.write_text('{"run": {"max_workers": 0}}', encoding="utf-8")
        assert main(["validate", str(tmp_path), "-c", str(config_path)]) == EXIT_ENGINE_ERROR
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_config(self, tmp_path):
        missing = tmp_path / "missing.json"
        assert main(["validate", str(tmp_path), "-c", str(missing)]) == EXIT_ENGINE_ERROR

    def test_invalid_worker_count(self, tmp_path):
        assert main(["validate", str(tmp_path), "-w", "0"]) == EXIT_ENGINE_ERROR

    def test_undecodable_file(self, tmp_path):
        (tmp_path / "latin1.xhtml").write_bytes(b"<p>caf\xe9</p>")
        assert main(["repair", str(tmp_path)]) == EXIT_ENGINE_ERROR

    def test_keyboard_interrupt(self, clean_dir, capsys):
        with patch.object(RepairEngine, "process_tree", side_effect=KeyboardInterrupt):
            assert main(["validate", str(clean_dir)]) == EXIT_INTERRUPTED
        assert "interrupted" in capsys.readouterr().err

    def test_unexpected_engine_error(self, clean_dir, capsys):
        with patch.object(RepairEngine, "_evaluate", side_effect=RuntimeError("engine bug")):
            assert main(["validate", str(clean_dir)]) == EXIT_ENGINE_ERROR
        assert "Engine error: engine bug" in capsys.readouterr().err

    def test_interrupt_with_workers(self, tmp_path, capsys):
        for index in range(4):
            write_text(tmp_path / f"ch{index}.xhtml", MESSY)
        with patch.object(RepairEngine, "_evaluate", side_effect=KeyboardInterrupt):
            assert main(["repair", str(tmp_path), "-w", "2"]) == EXIT_INTERRUPTED
        assert "interrupted" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == EXIT_ENGINE_ERROR


class TestHelpers:
    """Test output helpers."""

    def test_determine_exit_code(self):
        valid = FileReport(path="a", outcome=FileOutcome.VALID)
        rejected = FileReport(path="b", outcome=FileOutcome.REJECTED)
        failed = FileReport(path="c", outcome=FileOutcome.PROCESSING_ERROR)

        assert determine_exit_code(RunReport.from_file_reports([valid])) == EXIT_OK
        assert determine_exit_code(RunReport.from_file_reports([valid, rejected])) == EXIT_UNRESOLVED
        assert determine_exit_code(
            RunReport.from_file_reports([rejected, failed])
        ) == EXIT_ENGINE_ERROR

    def test_format_report(self):
        empty = RunReport()
        assert format_report(empty, "text") == "No XHTML files found."
        assert json.loads(format_report(empty, "json"))["files"] == []

    def test_progress_tracker(self, capsys):
        tracker = ProgressTracker(2, "Validating")
        tracker.update()
        tracker.update()

        assert tracker.completed == 2
        err = capsys.readouterr().err
        assert "(2/2)" in err
        assert err.endswith("\n")
