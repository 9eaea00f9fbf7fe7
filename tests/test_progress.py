from pathlib import Path

import pytest

from media_converter.domain.models import ConversionRequest
from media_converter.services.progress_monitor import (
    ProgressMonitor,
    compute_percentage,
    parse_progress_time,
    progress_ended,
    read_report_tail,
)


@pytest.mark.parametrize(
    "report,seconds",
    [
        ("out_time=00:00:05.500000\nprogress=continue\n", 5.5),
        ("out_time_us=2500000\n", 2.5),
        ("out_time_ms=4000000\n", 4.0),
        ("out_time=00:00:01.000000\nout_time=00:01:00.000000\n", 60.0),
        ("out_time=N/A\nout_time_us=N/A\n", None),
        ("out_time=-577014:32:22.775808\n", None),
        ("frame=10\nfps=0.0\n", None),
        ("", None),
    ],
)
def test_parse_progress_time(report, seconds):
    assert parse_progress_time(report) == seconds


def test_progress_end_marker():
    assert progress_ended("out_time=1\nprogress=continue\nout_time=2\nprogress=end\n")
    assert not progress_ended("progress=end\nout_time=3\nprogress=continue\n")
    assert not progress_ended("")


@pytest.mark.parametrize(
    "elapsed,total,expected",
    [(5, 10, 50), (9.99, 10, 99), (12, 10, 100), (0, 10, 0), (5, 0, None)],
)
def test_compute_percentage(elapsed, total, expected):
    assert compute_percentage(elapsed, total) == expected


def test_read_report_tail(tmp_path):
    report = tmp_path / "progress.txt"
    assert read_report_tail(report) == ""
    report.write_text("a" * 100 + "\nout_time_us=1000000\n")
    assert read_report_tail(report, tail_bytes=20).endswith("out_time_us=1000000\n")


def _request(name="song.wav"):
    return ConversionRequest(input_path=Path(name), output_format="mp3", current=2, total=3)


def test_monitor_reports_percentage(tmp_path):
    report = tmp_path / "progress.txt"
    report.write_text("out_time=00:00:05.000000\nprogress=continue\n")
    emitted = []
    monitor = ProgressMonitor(report, _request(), 10.0, emitted.append)

    status = monitor.poll()
    assert status.percentage == 50
    assert status.render() == "File 2 of 3: song.wav (50%)"
    assert emitted == [status]

    report.write_text("out_time=00:00:09.000000\nprogress=end\n")
    assert monitor.current_status().percentage == 100


def test_monitor_is_indeterminate_without_duration_or_tracking(tmp_path):
    report = tmp_path / "progress.txt"
    report.write_text("out_time=00:00:05.000000\n")
    unknown_total = ProgressMonitor(report, _request(), 0.0, lambda status: None)
    assert unknown_total.current_status().percentage is None
    assert unknown_total.current_status().text == "Processing..."

    untracked = ProgressMonitor(report, _request("pic.png"), 10.0, lambda status: None, track_percentage=False)
    status = untracked.current_status()
    assert status.percentage is None
    assert status.render() == "File 2 of 3: pic.png - Processing..."


def test_monitor_survives_failing_reporter(tmp_path):
    def broken(status):
        raise RuntimeError("display closed")

    monitor = ProgressMonitor(tmp_path / "progress.txt", _request(), 10.0, broken)
    assert monitor.poll().text == "Processing..."


def test_monitor_thread_stops_and_joins(tmp_path):
    report = tmp_path / "progress.txt"
    report.write_text("out_time_us=3000000\n")
    emitted = []
    monitor = ProgressMonitor(report, _request(), 10.0, emitted.append, interval=0.01)
    monitor.start()
    for _ in range(500):
        if emitted:
            break
        monitor.join(0.01)
    monitor.stop()
    assert not monitor.is_alive()
    assert emitted[0].percentage == 30
