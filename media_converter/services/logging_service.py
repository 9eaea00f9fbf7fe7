"""
This module provides classes for the persistent records a conversion run can leave behind.

It separates two concerns into specific classes: diagnostics for failed
conversions (ErrorLog) and the end-of-run summary (SummaryReport). Error logs are
in a human-readable text format for easy debugging, while the summary is written
in a machine-readable YAML format, which facilitates automated processing.

Both are optional and only created when the corresponding command-line option is
given. Neither affects the outcome of a conversion: a write failure is reported
through the application logger and otherwise ignored.
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Union

import yaml
from loguru import logger

from ..config.common import ERROR_LOG_FILENAME
from ..domain.models import BatchSummary


class Log:
    """
    A base class for all logging operations.

    Handles the basic setup of the log file path and makes sure the log
    directory exists.
    """

    # A decorative separator line used in text-based logs for better readability.
    linesep_marker: str = "=" * 50

    def __init__(self, log_base_path: Path):
        """
        Args:
            log_base_path: The base path for logging. If it's a directory (or has
                           no suffix), log files will be created inside it. If it's
                           a file path, its parent will be used as the log directory.
        """
        self.log_file_path: Path  # To be defined by the subclass.
        if log_base_path.is_dir() or not log_base_path.suffix:
            self.log_dir: Path = log_base_path.resolve()
        else:
            self.log_dir: Path = log_base_path.parent.resolve()
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, log_content: Union[dict, list, str]):
        raise NotImplementedError("Subclasses must implement the write() method.")


class ErrorLog(Log):
    """
    Appends diagnostics for failed conversions to a plain text file.

    Each entry holds the failed file, the reason, the command that was run and
    the tail of its stderr. Entries are separated by a marker line. Worker threads
    share one instance, so writes are serialized.
    """

    def __init__(self, error_log_dir: Path, filename: str = ERROR_LOG_FILENAME):
        super().__init__(error_log_dir)
        self.log_file_path = self.log_dir / filename
        self._lock = threading.Lock()

    def write(self, *error_messages: str):
        """
        Writes one or more error messages to the log file as a single entry.

        Args:
            *error_messages: The parts of the entry, one per line.
        """
        if not error_messages:
            return

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        content_to_write = "\n".join((timestamp,) + error_messages) + "\n" + self.linesep_marker + "\n"

        try:
            with self._lock, self.log_file_path.open("a", encoding="utf-8") as f:
                f.write(content_to_write)
        except OSError as e:
            # Keep the diagnostics in the application log if the file is unusable.
            logger.error(f"Failed to write to error log {self.log_file_path}: {e}")
            for msg in error_messages:
                logger.error(f"  - {msg}")


class SummaryReport:
    """
    Writes the final `BatchSummary` to a YAML file.

    Attributes:
        report_path (Path): Destination file. Its parent directory is created if needed.
    """

    def __init__(self, report_path: Path):
        self.report_path = report_path

    def build(self, summary: BatchSummary, output_format: str, started: datetime, ended: datetime) -> dict:
        report = {
            "output_format": output_format,
            "started_datetime": started.strftime("%Y-%m-%d %H:%M:%S"),
            "ended_datetime": ended.strftime("%Y-%m-%d %H:%M:%S"),
            "all_succeeded": summary.all_succeeded,
        }
        report.update(summary.to_dict())
        return report

    def write(self, summary: BatchSummary, output_format: str, started: datetime, ended: datetime) -> bool:
        report = self.build(summary, output_format, started, ended)
        try:
            self.report_path.parent.mkdir(parents=True, exist_ok=True)
            with self.report_path.open("w", encoding="utf-8") as f:
                yaml.dump(
                    report,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    allow_unicode=True,
                    indent=4,
                    width=220,
                )
        except OSError as e:
            logger.error(f"Failed to write summary report {self.report_path}: {e}")
            return False
        logger.info(f"Summary report written to {self.report_path}")
        return True
