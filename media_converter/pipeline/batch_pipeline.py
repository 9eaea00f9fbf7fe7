import concurrent.futures
import tempfile
import threading
import traceback
from pathlib import Path
from typing import List, Optional, Sequence, Union

from loguru import logger

from ..config.common import PROGRESS_POLL_INTERVAL, SCRATCH_DIR_PREFIX, TRANSCODE_TIMEOUT_SECONDS
from ..config.toolchain import Toolchain
from ..domain.exceptions import ConversionCancelled, UsageError
from ..domain.formats import FormatRegistry, FormatSpec
from ..domain.media import MediaCategory
from ..domain.models import BatchSummary, ConversionOutcome, ConversionRequest, MultiPageMode
from ..services.classifier import MediaClassifier
from ..services.conversion_service import ConversionExecutor
from ..services.logging_service import ErrorLog
from ..services.status_reporter import StatusReporter


class BatchPipeline:
    """
    Runs one output format over a list of input files.

    The pipeline owns a scratch directory for the duration of `run()` and removes it
    on every exit path. Files are converted in input order, one at a time by
    default, or on a bounded pool of worker threads when `jobs` is greater than 1.
    Results are always recorded in input order.

    Attributes:
        registry (FormatRegistry): Resolves the output-format identifier.
        toolchain (Toolchain): The external executables.
        reporter (StatusReporter): The UI seam. Asked once for the page mode when
                                   documents are converted to images.
        jobs (int): Number of files converted concurrently.
        scratch_root (Optional[Path]): Parent of the scratch directory. Defaults to
                                       the system temporary directory.
        cancel_event (threading.Event): Set by `cancel()`; stops every worker.
    """

    def __init__(
        self,
        registry: FormatRegistry,
        toolchain: Optional[Toolchain] = None,
        reporter: Optional[StatusReporter] = None,
        jobs: int = 1,
        scratch_root: Optional[Path] = None,
        timeout: Optional[float] = TRANSCODE_TIMEOUT_SECONDS,
        error_log_dir: Optional[Path] = None,
        cancel_event: Optional[threading.Event] = None,
        poll_interval: float = PROGRESS_POLL_INTERVAL,
    ):
        self.registry = registry
        self.toolchain = toolchain or Toolchain.from_config()
        self.reporter = reporter or StatusReporter()
        self.jobs = max(1, jobs)
        self.scratch_root = scratch_root
        self.cancel_event = cancel_event or threading.Event()
        self.classifier = MediaClassifier(self.toolchain.ffprobe)
        self.executor = ConversionExecutor(
            registry,
            toolchain=self.toolchain,
            classifier=self.classifier,
            reporter=self.reporter,
            cancel_event=self.cancel_event,
            poll_interval=poll_interval,
            timeout=timeout,
            error_log=ErrorLog(error_log_dir) if error_log_dir else None,
        )
        self.scratch_dir: Optional[Path] = None

    def cancel(self):
        """Aborts the running batch. Safe to call from any thread."""
        logger.warning("Cancellation requested, stopping running conversions.")
        self.cancel_event.set()

    def run(
        self,
        input_paths: Sequence[Union[str, Path]],
        output_format: str,
        page_mode: Optional[MultiPageMode] = None,
    ) -> BatchSummary:
        """
        Converts every input file to `output_format`.

        Args:
            input_paths: The files to convert, in processing order.
            output_format: An identifier from the format registry.
            page_mode: How paginated documents become images. When None, the
                       reporter is asked if the batch needs an answer.

        Returns:
            The batch summary. A batch with failed files is still a summary.

        Raises:
            UsageError: If no files are given or the format is unknown.
            ConversionCancelled: If the batch is cancelled.
        """
        if not input_paths:
            raise UsageError("No input files given.")
        spec = self.registry.get(output_format)
        paths = [Path(p) for p in input_paths]

        if page_mode is None:
            page_mode = self._resolve_page_mode(paths, spec)

        total = len(paths)
        requests = [
            ConversionRequest(
                input_path=path,
                output_format=spec.identifier,
                current=index,
                total=total,
                page_mode=page_mode,
            )
            for index, path in enumerate(paths, start=1)
        ]
        logger.info(f"Converting {total} file(s) to {spec.identifier} ({spec.description})")

        with tempfile.TemporaryDirectory(
            prefix=SCRATCH_DIR_PREFIX, dir=self.scratch_root, ignore_cleanup_errors=True
        ) as scratch:
            self.scratch_dir = Path(scratch)
            logger.debug(f"Scratch directory: {self.scratch_dir}")
            try:
                if self.jobs == 1:
                    outcomes = self._run_sequential(requests)
                else:
                    outcomes = self._run_parallel(requests)
            except (ConversionCancelled, KeyboardInterrupt):
                self.cancel_event.set()
                logger.warning("Batch cancelled.")
                raise

        summary = BatchSummary(total_count=total)
        for outcome in outcomes:
            summary.record(outcome)
        self._notify_finished(summary)
        return summary

    def _resolve_page_mode(self, paths: List[Path], spec: FormatSpec) -> MultiPageMode:
        if spec.category is not MediaCategory.IMAGE:
            return MultiPageMode.SINGLE
        if not any(self.classifier.classify(path) is MediaCategory.DOCUMENT for path in paths):
            return MultiPageMode.SINGLE
        try:
            page_mode = MultiPageMode(self.reporter.ask_page_mode())
        except Exception as e:
            logger.warning(f"Could not ask for the page mode ({e}), converting the first page only.")
            return MultiPageMode.SINGLE
        logger.info(f"Page mode for documents: {page_mode.value}")
        return page_mode

    def _run_sequential(self, requests: List[ConversionRequest]) -> List[ConversionOutcome]:
        return [self._execute_one(request) for request in requests]

    def _run_parallel(self, requests: List[ConversionRequest]) -> List[ConversionOutcome]:
        logger.info(f"Using {self.jobs} worker thread(s).")
        outcomes: List[Optional[ConversionOutcome]] = [None] * len(requests)
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.jobs, thread_name_prefix="convert"
        ) as pool:
            futures = {pool.submit(self._execute_one, request): index for index, request in enumerate(requests)}
            try:
                for future in concurrent.futures.as_completed(futures):
                    outcomes[futures[future]] = future.result()
            except BaseException:
                # Running workers notice the event and tear down their processes.
                self.cancel_event.set()
                for future in futures:
                    future.cancel()
                raise
        return outcomes

    def _execute_one(self, request: ConversionRequest) -> ConversionOutcome:
        try:
            return self.executor.execute(request, self.scratch_dir)
        except ConversionCancelled:
            raise
        except Exception as exc:
            tb_str = traceback.format_exception(type(exc), exc, exc.__traceback__)
            logger.error(
                f"Unexpected error while converting {request.display_name}:\n"
                f"Exception type: {type(exc).__name__}\n"
                f"Exception message: {exc}\n"
                f"Traceback: {''.join(tb_str)}"
            )
            return ConversionOutcome.failure(request.input_path, f"Unexpected error: {exc}")

    def _notify_finished(self, summary: BatchSummary):
        try:
            self.reporter.finished(summary)
        except Exception as e:
            logger.warning(f"Status reporter failed to receive the summary: {e}")
