"""
Watches the transcoder's progress report while a conversion runs.

The transcoder is started with `-progress <file>` and appends blocks of
`key=value` lines to that file. `ProgressMonitor` is a thread that polls the
tail of the file at a fixed interval, extracts the latest elapsed-time marker,
and turns it into a `StatusUpdate` for the UI layer.
"""

import math
import threading
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from ..config.common import PROGRESS_POLL_INTERVAL, PROGRESS_TAIL_BYTES
from ..domain.media import parse_duration
from ..domain.models import ConversionRequest, StatusUpdate


def parse_progress_time(report: str) -> Optional[float]:
    """
    Returns the most recent elapsed time (in seconds) found in a progress report.

    `out_time=HH:MM:SS.micro` is preferred; `out_time_us` and `out_time_ms` (both
    in microseconds, despite the name of the latter) are accepted as well.
    Placeholder values such as "N/A" are skipped.
    """
    for line in reversed(report.splitlines()):
        key, sep, value = line.strip().partition("=")
        # The transcoder reports a negative out_time before the first packet.
        if not sep or value in ("", "N/A") or value.startswith("-"):
            continue
        if key == "out_time":
            seconds = parse_duration(value)
            if seconds > 0 or value.startswith("00:00:00"):
                return seconds
        elif key in ("out_time_us", "out_time_ms"):
            try:
                return max(0, int(value)) / 1_000_000
            except ValueError:
                continue
    return None


def progress_ended(report: str) -> bool:
    for line in reversed(report.splitlines()):
        if line.startswith("progress="):
            return line.strip() == "progress=end"
    return False


def compute_percentage(elapsed: float, total_duration: float) -> Optional[int]:
    """Returns `min(100, floor(elapsed / total * 100))`, or None when the total is unknown."""
    if total_duration <= 0:
        return None
    return min(100, math.floor(elapsed / total_duration * 100))


def read_report_tail(progress_file: Path, tail_bytes: int = PROGRESS_TAIL_BYTES) -> str:
    try:
        with progress_file.open("rb") as f:
            f.seek(0, 2)
            size = f.tell()
            f.seek(max(0, size - tail_bytes))
            return f.read().decode("utf-8", errors="replace")
    except FileNotFoundError:
        return ""
    except OSError as e:
        logger.trace(f"Could not read progress report {progress_file}: {e}")
        return ""


class ProgressMonitor(threading.Thread):
    """
    Observer thread for one running conversion.

    Percentages are only computed when `track_percentage` is set and the total
    duration is known; otherwise the monitor emits an indeterminate
    "processing" status. The caller starts the thread after launching the
    transcoder and must call `stop()` (which joins) before finalizing.

    Attributes:
        progress_file (Path): The report written by the transcoder.
        request (ConversionRequest): The conversion being observed.
        total_duration (float): Source duration in seconds, 0.0 if unknown.
        emit (Callable[[StatusUpdate], None]): Receives each status update.
        interval (float): Seconds between polls.
        track_percentage (bool): False for image, document and subtitle sources.
    """

    def __init__(
        self,
        progress_file: Path,
        request: ConversionRequest,
        total_duration: float,
        emit: Callable[[StatusUpdate], None],
        interval: float = PROGRESS_POLL_INTERVAL,
        track_percentage: bool = True,
    ):
        super().__init__(name=f"progress-{request.current}", daemon=True)
        self.progress_file = progress_file
        self.request = request
        self.total_duration = total_duration
        self.emit = emit
        self.interval = interval
        self.track_percentage = track_percentage
        self.last_percentage: Optional[int] = None
        self._stop_event = threading.Event()

    def run(self):
        while not self._stop_event.wait(self.interval):
            self.poll()

    def stop(self):
        self._stop_event.set()
        if self.is_alive():
            self.join()

    def poll(self) -> StatusUpdate:
        status = self.current_status()
        try:
            self.emit(status)
        except Exception as e:
            logger.warning(f"Status reporter failed for {self.request.display_name}: {e}")
        return status

    def current_status(self) -> StatusUpdate:
        if not self.track_percentage:
            return self._status("Processing...")

        report = read_report_tail(self.progress_file)
        elapsed = parse_progress_time(report)
        percentage = None
        if progress_ended(report) and self.total_duration > 0:
            percentage = 100
        elif elapsed is not None:
            percentage = compute_percentage(elapsed, self.total_duration)

        if percentage is None:
            return self._status("Processing...")
        self.last_percentage = percentage
        return self._status(f"{percentage}%", percentage)

    def _status(self, text: str, percentage: Optional[int] = None) -> StatusUpdate:
        return StatusUpdate(
            name=self.request.display_name,
            current=self.request.current,
            total=self.request.total,
            text=text,
            percentage=percentage,
        )
