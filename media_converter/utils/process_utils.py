"""
This module provides helpers for running the external tools as supervised child
processes.

Every external command (transcoder, document converter, archive extractor) is
started in its own process group so that it can be torn down together with any
helpers it spawns. While the command runs, the caller's thread waits in short,
timeout-bounded slices so that batch cancellation and the per-command time limit
are noticed promptly.
"""

import os
import shlex
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

from loguru import logger

from ..config.common import PROGRESS_POLL_INTERVAL, TERMINATE_GRACE_SECONDS
from ..domain.exceptions import ConversionCancelled


def display_command(cmd_list: Sequence[str]) -> str:
    """
    Creates a display-friendly version of a command for logging.

    Uses platform-specific quoting so the string can be pasted into a shell.
    """
    if os.name == "nt":
        return subprocess.list2cmdline(list(cmd_list))
    return shlex.join(cmd_list)


_FILTER_OPTION_SPECIAL = "\\':"
_FILTER_GRAPH_SPECIAL = "\\'[],;"


def _backslash_escape(text: str, special: str) -> str:
    return "".join("\\" + char if char in special else char for char in text)


def escape_filter_path(path: Union[str, Path]) -> str:
    """
    Escapes a file path for use as an option value inside an ffmpeg filter graph.

    ffmpeg unescapes a filter graph twice: once when the graph is split into
    filters and once when a filter's arguments are split into options. The path
    is escaped for the option level first (backslash, quote, colon) and the
    result again for the graph level (backslash, quote, brackets, comma,
    semicolon). Windows separators are turned into forward slashes.
    """
    text = str(path).replace("\\", "/")
    return _backslash_escape(_backslash_escape(text, _FILTER_OPTION_SPECIAL), _FILTER_GRAPH_SPECIAL)


def read_tail(path: Path, max_lines: int) -> str:
    """Returns the last `max_lines` non-empty lines of a text file, or "" if unreadable."""
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return "\n".join(lines[-max_lines:])


def _popen_group_kwargs() -> dict:
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def terminate_process_group(process: subprocess.Popen, grace: float = TERMINATE_GRACE_SECONDS):
    """
    Terminates a child process together with its whole process group.

    The group first receives SIGTERM; if the leader has not exited after `grace`
    seconds the group is killed. The leader is always reaped before returning.
    """
    if process.poll() is not None:
        return
    logger.debug(f"Terminating process group of pid {process.pid}")
    try:
        if os.name == "nt":
            process.terminate()
        else:
            os.killpg(process.pid, signal.SIGTERM)
    except ProcessLookupError:
        pass
    try:
        process.wait(timeout=grace)
        return
    except subprocess.TimeoutExpired:
        logger.warning(f"Process {process.pid} ignored SIGTERM, killing its group.")
    try:
        if os.name == "nt":
            process.kill()
        else:
            os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    process.wait()


class SupervisedProcess:
    """
    A child process with a deadline and a cancellation flag.

    Use as a context manager: the process is started on entry and, if it is still
    alive on exit (because waiting was interrupted by cancellation, a timeout or
    any other exception), its process group is terminated.

    Attributes:
        cmd_list (List[str]): The command being run.
        stderr_path (Optional[Path]): File receiving the child's stderr. When None,
                                      stderr is discarded.
        timeout (Optional[float]): Seconds the child may run before it is killed.
        cancel_event (Optional[threading.Event]): When set, waiting stops and the
                                                  child is torn down.
    """

    def __init__(
        self,
        cmd_list: Sequence[str],
        stderr_path: Optional[Path] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        poll_interval: float = PROGRESS_POLL_INTERVAL,
    ):
        self.cmd_list: List[str] = [str(part) for part in cmd_list]
        self.stderr_path = stderr_path
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.poll_interval = poll_interval
        self.process: Optional[subprocess.Popen] = None
        self._stderr_handle: Optional[IO[bytes]] = None

    def __enter__(self) -> "SupervisedProcess":
        logger.debug(f"Executing: {display_command(self.cmd_list)}")
        if self.stderr_path is not None:
            self._stderr_handle = self.stderr_path.open("wb")
        try:
            self.process = subprocess.Popen(
                self.cmd_list,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=self._stderr_handle or subprocess.DEVNULL,
                **_popen_group_kwargs(),
            )
        except OSError:
            self._close_stderr()
            raise
        self._started_at = time.monotonic()
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if self.process is not None and self.process.poll() is None:
                terminate_process_group(self.process)
        finally:
            self._close_stderr()
        return False

    def _close_stderr(self):
        if self._stderr_handle is not None:
            self._stderr_handle.close()
            self._stderr_handle = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def is_alive(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def wait(self) -> int:
        """
        Waits for the child to exit and returns its exit code.

        Raises:
            ConversionCancelled: If the cancellation flag is set while waiting.
            subprocess.TimeoutExpired: If the child outlives its time limit.
        """
        if self.process is None:
            raise RuntimeError("SupervisedProcess.wait() called before the process was started.")
        deadline = self._started_at + self.timeout if self.timeout else None
        while True:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise ConversionCancelled(f"Cancelled while running {Path(self.cmd_list[0]).name}")
            slice_seconds = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise subprocess.TimeoutExpired(self.cmd_list, self.timeout)
                slice_seconds = min(slice_seconds, remaining)
            try:
                return self.process.wait(timeout=slice_seconds)
            except subprocess.TimeoutExpired:
                continue


def run_supervised(cmd_list: Sequence[str], **kwargs) -> int:
    """Runs a command to completion under supervision and returns its exit code."""
    with SupervisedProcess(cmd_list, **kwargs) as supervised:
        return supervised.wait()
