import sys
from datetime import datetime
from pathlib import Path

import yaml

from media_converter.domain.models import BatchSummary, ConversionOutcome, MultiPageMode, StatusUpdate
from media_converter.services.logging_service import ErrorLog, SummaryReport
from media_converter.services.status_reporter import LogStatusReporter, StatusReporter


class _Tty:
    def isatty(self):
        return True


class _Pipe:
    def isatty(self):
        return False


def test_base_reporter_defaults_to_single_page():
    assert StatusReporter().ask_page_mode() is MultiPageMode.SINGLE


def test_cli_page_mode_wins():
    reporter = LogStatusReporter(page_mode=MultiPageMode.ANIMATED, prompt=lambda text: "2")
    assert reporter.ask_page_mode() is MultiPageMode.ANIMATED


def test_interactive_prompt(monkeypatch):
    monkeypatch.setattr(sys, "stdin", _Tty())
    assert LogStatusReporter(prompt=lambda text: "2").ask_page_mode() is MultiPageMode.SEPARATE
    assert LogStatusReporter(prompt=lambda text: " 3 ").ask_page_mode() is MultiPageMode.ANIMATED
    assert LogStatusReporter(prompt=lambda text: "").ask_page_mode() is MultiPageMode.SINGLE
    assert LogStatusReporter(prompt=lambda text: "nonsense").ask_page_mode() is MultiPageMode.SINGLE


def test_no_terminal_means_single_page(monkeypatch):
    def never(text):
        raise AssertionError("must not prompt")

    monkeypatch.setattr(sys, "stdin", _Pipe())
    assert LogStatusReporter(prompt=never).ask_page_mode() is MultiPageMode.SINGLE


def test_status_render():
    assert StatusUpdate("a.wav", 1, 4, "45%", 45).render() == "File 1 of 4: a.wav (45%)"
    assert StatusUpdate("a.pdf", 2, 4, "Processing...").render() == "File 2 of 4: a.pdf - Processing..."


def test_summary_messages():
    summary = BatchSummary(total_count=2)
    summary.record(ConversionOutcome.success(Path("/x/a.wav"), Path("/x/a_converted.mp3")))
    assert not summary.all_succeeded
    summary.record(ConversionOutcome.failure(Path("/x/b.bin"), "Not a valid media file: b.bin"))
    assert summary.failed_count == 1
    assert summary.message() == "Converted 1 of 2 files.\n\nFailed files:\nb.bin"


def test_error_log_appends_entries(tmp_path):
    log = ErrorLog(tmp_path / "logs")
    log.write("File: a.wav", "Reason: broken")
    log.write("File: b.wav", "Reason: also broken")
    log.write()
    text = log.log_file_path.read_text(encoding="utf-8")
    assert log.log_file_path.name == "conversion_errors.txt"
    assert text.count(ErrorLog.linesep_marker) == 2
    assert text.index("a.wav") < text.index("b.wav")


def test_summary_report_is_yaml(tmp_path):
    summary = BatchSummary(total_count=1)
    summary.record(ConversionOutcome.success(Path("/x/a.wav"), Path("/x/a_converted.mp3")))
    report = SummaryReport(tmp_path / "out" / "report.yaml")

    assert report.write(summary, "mp3", datetime(2024, 1, 1, 10, 0, 0), datetime(2024, 1, 1, 10, 5, 0))

    data = yaml.safe_load(report.report_path.read_text(encoding="utf-8"))
    assert data["started_datetime"] == "2024-01-01 10:00:00"
    assert data["all_succeeded"] is True
    assert data["outcomes"][0]["output_file"] == "/x/a_converted.mp3"
