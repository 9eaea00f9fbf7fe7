"""
The seam between the conversion pipeline and whatever displays it.

The pipeline talks to a `StatusReporter`: it pushes live `StatusUpdate`s, asks
once per batch how paginated documents should be turned into images, and hands
over the final `BatchSummary`. `LogStatusReporter` is the console implementation
used by the command line; a GUI would provide its own subclass.
"""

import sys
import threading
from typing import Callable, Dict, Optional

from loguru import logger

from ..domain.models import BatchSummary, MultiPageMode, StatusUpdate


class StatusReporter:
    """Base reporter. Ignores updates and answers the page-mode question with the safe default."""

    def update(self, status: StatusUpdate):
        pass

    def ask_page_mode(self) -> MultiPageMode:
        return MultiPageMode.SINGLE

    def finished(self, summary: BatchSummary):
        pass


class LogStatusReporter(StatusReporter):
    """
    Reports progress through the application logger.

    Updates for the same file are de-duplicated so the log gets one line per
    percentage change rather than one per poll. Updates may arrive from several
    worker threads at once.

    Attributes:
        page_mode (Optional[MultiPageMode]): Answer given on the command line. When
                                             None, the user is prompted if stdin is
                                             a terminal.
        prompt (Callable[[str], str]): Reads the user's answer; `input` by default.
    """

    _PAGE_MODE_CHOICES = {
        "1": MultiPageMode.SINGLE,
        "2": MultiPageMode.SEPARATE,
        "3": MultiPageMode.ANIMATED,
    }

    def __init__(self, page_mode: Optional[MultiPageMode] = None, prompt: Callable[[str], str] = input):
        self.page_mode = page_mode
        self.prompt = prompt
        self._last_text: Dict[str, str] = {}
        self._lock = threading.Lock()

    def update(self, status: StatusUpdate):
        rendered = status.render()
        key = f"{status.current}:{status.name}"
        with self._lock:
            if self._last_text.get(key) == rendered:
                return
            self._last_text[key] = rendered
        logger.info(rendered)

    def ask_page_mode(self) -> MultiPageMode:
        if self.page_mode is not None:
            return self.page_mode
        if not sys.stdin or not sys.stdin.isatty():
            logger.info("No terminal available, converting the first page of each document only.")
            return MultiPageMode.SINGLE

        answer = self.prompt(
            "Documents with several pages were selected. Convert:\n"
            "  1) first page only\n"
            "  2) every page to a separate image\n"
            "  3) all pages into one animated image\n"
            "Choice [1]: "
        ).strip()
        return self._PAGE_MODE_CHOICES.get(answer, MultiPageMode.SINGLE)

    def finished(self, summary: BatchSummary):
        if summary.all_succeeded:
            logger.success(summary.message())
        else:
            logger.warning(summary.message())
