"""
The Conversion Executor: drives one conversion request from input file to output file.

A request moves through these stages:

- **Validating:** the input is classified and the (source, target) category pair is
  checked. A refusal carries a specific reason and happens before any subprocess
  is started.
- **Archive expansion:** an archive is extracted into scratch space and each member
  is run through the stages below as a request of its own. Members are never
  expanded again, so nesting stops at one level. The archive request succeeds only
  if every member does.
- **Converting / Monitoring:** the transcoder command is built from the target's
  `FormatSpec` plus structural flags for the (source, target, page mode) triple and
  started as a supervised child process. A `ProgressMonitor` thread reports its
  progress until the process exits. Document-to-document requests call the
  document converter instead and never start the transcoder.
- **Finalizing:** success needs exit code 0 and a non-empty output (or first page,
  for multi-page output). Partial output of a failed run is removed; intermediate
  files are always removed.

Per-file problems are raised as `ConversionException`s internally and turned into a
failed `ConversionOutcome` at the boundary of `execute()`, and so is an unknown
output format. `ConversionCancelled` is the only exception that leaves the
executor; a `KeyboardInterrupt` still propagates, after the partial output of the
running conversion is removed.
"""

import shutil
import subprocess
import tempfile
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from ..config.common import (
    JOB_DIR_PREFIX,
    MAX_ALLOCATION_ATTEMPTS,
    PAGE_PLACEHOLDER,
    PROGRESS_POLL_INTERVAL,
    STAGING_DIR_PREFIX,
    STDERR_TAIL_LINES,
    SUBTITLE_CANVAS_RATE,
    SUBTITLE_CANVAS_SIZE,
    SUBTITLE_DEFAULT_SECONDS,
    TEXT_CANVAS_SIZE,
    TEXT_FONT_SIZE,
    TRANSCODE_TIMEOUT_SECONDS,
)
from ..config.formats import ANIMATED_IMAGE_FORMATS, PLAIN_TEXT_EXTENSIONS
from ..config.toolchain import Toolchain
from ..domain.exceptions import (
    ConversionCancelled,
    ConversionException,
    InvalidMediaException,
    OutputAllocationException,
    OutputCollisionException,
    TranscodeFailedException,
    TranscodeTimeoutException,
    UnsupportedFormatError,
)
from ..domain.formats import FormatRegistry, FormatSpec
from ..domain.media import MediaCategory
from ..domain.models import ConversionOutcome, ConversionRequest, MultiPageMode, StatusUpdate
from ..utils.format_utils import contains_any_extensions, format_timedelta, formatted_size
from ..utils.process_utils import SupervisedProcess, display_command, escape_filter_path, read_tail
from .archive_service import ArchiveExpander
from .classifier import MediaClassifier
from .compatibility import CompatibilityValidator
from .document_service import DocumentConverter
from .logging_service import ErrorLog
from .path_allocator import OutputPathAllocator, first_page, is_pattern
from .progress_monitor import ProgressMonitor
from .status_reporter import StatusReporter

# Printed by the transcoder when `-n` refuses to overwrite an existing output.
_ALREADY_EXISTS_MARKER = "already exists"


def is_plain_text(path: Path) -> bool:
    return contains_any_extensions(path, PLAIN_TEXT_EXTENSIONS)


def remove_output(output_path: Path):
    """Deletes an output file, or every materialized page of a multi-page pattern."""
    if not is_pattern(output_path):
        output_path.unlink(missing_ok=True)
        return
    page_glob = output_path.name.replace(PAGE_PLACEHOLDER, "[0-9][0-9][0-9]")
    for page in output_path.parent.glob(page_glob):
        page.unlink(missing_ok=True)


class ConversionExecutor:
    """
    Executes conversion requests.

    An executor is shared by all workers of a batch: the allocator serializes
    output-path allocation and the classifier caches probe results, both under
    their own locks. Everything else is per call.

    Attributes:
        registry (FormatRegistry): Resolves output-format identifiers.
        toolchain (Toolchain): The external executables.
        classifier (MediaClassifier): Classifies inputs and probes durations.
        allocator (OutputPathAllocator): Hands out output paths.
        expander (ArchiveExpander): Extracts archive inputs.
        documents (DocumentConverter): Runs the document converter.
        reporter (StatusReporter): Receives live status updates.
        cancel_event (threading.Event): When set, running child processes are torn
                                        down and `ConversionCancelled` is raised.
        poll_interval (float): Seconds between progress polls.
        timeout (Optional[float]): Time limit for one transcoder run.
        error_log (Optional[ErrorLog]): Receives diagnostics for failed requests.
    """

    def __init__(
        self,
        registry: FormatRegistry,
        toolchain: Optional[Toolchain] = None,
        classifier: Optional[MediaClassifier] = None,
        allocator: Optional[OutputPathAllocator] = None,
        expander: Optional[ArchiveExpander] = None,
        documents: Optional[DocumentConverter] = None,
        reporter: Optional[StatusReporter] = None,
        cancel_event: Optional[threading.Event] = None,
        poll_interval: float = PROGRESS_POLL_INTERVAL,
        timeout: Optional[float] = TRANSCODE_TIMEOUT_SECONDS,
        error_log: Optional[ErrorLog] = None,
    ):
        self.registry = registry
        self.toolchain = toolchain or Toolchain.from_config()
        self.cancel_event = cancel_event or threading.Event()
        self.classifier = classifier or MediaClassifier(self.toolchain.ffprobe)
        self.allocator = allocator or OutputPathAllocator()
        self.expander = expander or ArchiveExpander(self.classifier, self.toolchain, cancel_event=self.cancel_event)
        self.documents = documents or DocumentConverter(self.toolchain, cancel_event=self.cancel_event)
        self.reporter = reporter or StatusReporter()
        self.validator = CompatibilityValidator(registry)
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.error_log = error_log

    # --- Entry point ---

    def execute(self, request: ConversionRequest, scratch_dir: Path) -> ConversionOutcome:
        """
        Converts one input file and reports the result.

        Args:
            request: The conversion to perform.
            scratch_dir: A directory owned by the caller for intermediate files.
                         Everything the executor creates in it is removed again.

        Returns:
            The outcome. Per-file failures are reported here, never raised.

        Raises:
            ConversionCancelled: If the batch was cancelled while converting.
        """
        self._check_cancelled()
        logger.info(
            f"Converting {request.display_name} to {request.output_format} "
            f"(file {request.current} of {request.total})"
        )
        started = datetime.now()
        try:
            outcome = self._execute(request, scratch_dir, expand_archives=True)
        except (ConversionException, UnsupportedFormatError) as e:
            outcome = ConversionOutcome.failure(request.input_path, str(e))
            self._record_failure(request, e)

        if outcome.succeeded:
            elapsed = format_timedelta(datetime.now() - started)
            logger.success(f"Converted {request.display_name} -> {self._describe(outcome)} in {elapsed}")
        else:
            logger.error(f"Failed to convert {request.display_name}: {outcome.failure_reason}")
        return outcome

    def _execute(self, request: ConversionRequest, scratch_dir: Path, expand_archives: bool) -> ConversionOutcome:
        self._emit(request, "Validating...")
        source = self.classifier.classify(request.input_path)

        if source is MediaCategory.ARCHIVE:
            if not expand_archives:
                raise InvalidMediaException(f"Nested archives are not supported: {request.display_name}")
            self.registry.get(request.output_format)
            return self._convert_archive(request, scratch_dir)

        spec = self.validator.check(request.input_path, source, request.output_format)
        if source is MediaCategory.DOCUMENT and spec.category is MediaCategory.DOCUMENT:
            return self._convert_document(request, spec, scratch_dir)
        return self._transcode(request, source, spec, scratch_dir)

    # --- Archives ---

    def _convert_archive(self, request: ConversionRequest, scratch_dir: Path) -> ConversionOutcome:
        self._emit(request, "Extracting archive...")
        with self.expander.expansion_dir(scratch_dir) as expansion_dir:
            members = self.expander.expand(request.input_path, expansion_dir)
            outcomes: List[ConversionOutcome] = []
            for member in members:
                self._check_cancelled()
                # Outputs land next to the archive, not in scratch space.
                member_request = replace(request, input_path=member, output_dir=request.target_dir)
                outcomes.append(self._execute_member(member_request, scratch_dir))

        failed = [outcome.display_name for outcome in outcomes if not outcome.succeeded]
        if failed:
            reason = (
                f"{len(failed)} of {len(outcomes)} files in {request.display_name} failed: "
                + ", ".join(failed)
            )
            return ConversionOutcome.failure(request.input_path, reason, members=outcomes)
        return ConversionOutcome.success(request.input_path, request.target_dir, members=outcomes)

    def _execute_member(self, request: ConversionRequest, scratch_dir: Path) -> ConversionOutcome:
        try:
            outcome = self._execute(request, scratch_dir, expand_archives=False)
        except ConversionException as e:
            self._record_failure(request, e)
            logger.warning(f"Archive member {request.display_name} failed: {e}")
            return ConversionOutcome.failure(request.input_path, str(e))
        logger.debug(f"Archive member {request.display_name} converted to {outcome.output_path}")
        return outcome

    # --- Documents ---

    def _convert_document(self, request: ConversionRequest, spec: FormatSpec, scratch_dir: Path) -> ConversionOutcome:
        convert_to = spec.transcoder_args[0] if spec.transcoder_args else spec.identifier
        self._emit(request, "Converting document...")
        staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_DIR_PREFIX, dir=scratch_dir))
        try:
            produced = self.documents.convert(request.input_path, convert_to, staging_dir)
            output_path = self._with_output_path(
                request, spec, multi=False, produce=lambda path: self._place_file(produced, path)
            )
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)
        self._emit(request, "Done")
        return ConversionOutcome.success(request.input_path, output_path)

    @staticmethod
    def _place_file(produced: Path, output_path: Path):
        try:
            with output_path.open("xb") as dst, produced.open("rb") as src:
                shutil.copyfileobj(src, dst)
        except FileExistsError:
            raise OutputCollisionException(f"Output path was taken by another writer: {output_path.name}") from None

    # --- Transcoding ---

    def effective_page_mode(self, request: ConversionRequest, source: MediaCategory, spec: FormatSpec) -> MultiPageMode:
        """Returns the page mode that applies to this request, SINGLE where pages do not apply."""
        if source is not MediaCategory.DOCUMENT or spec.category is not MediaCategory.IMAGE:
            return MultiPageMode.SINGLE
        if is_plain_text(request.input_path):
            return MultiPageMode.SINGLE
        if request.page_mode is MultiPageMode.ANIMATED and spec.identifier not in ANIMATED_IMAGE_FORMATS:
            logger.warning(
                f"{spec.identifier} cannot hold an animation, converting the first page of "
                f"{request.display_name} only."
            )
            return MultiPageMode.SINGLE
        return request.page_mode

    def _transcode(
        self,
        request: ConversionRequest,
        source: MediaCategory,
        spec: FormatSpec,
        scratch_dir: Path,
    ) -> ConversionOutcome:
        page_mode = self.effective_page_mode(request, source, spec)
        track_percentage = source in (MediaCategory.AUDIO, MediaCategory.VIDEO)
        total_duration = self.classifier.duration(request.input_path) if track_percentage else 0.0

        job_dir = Path(tempfile.mkdtemp(prefix=JOB_DIR_PREFIX, dir=scratch_dir))
        try:
            input_path = request.input_path
            canvas_seconds = 0.0
            if source is MediaCategory.DOCUMENT and not is_plain_text(input_path):
                self._emit(request, "Preparing document...")
                staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_DIR_PREFIX, dir=job_dir))
                input_path = self.documents.to_pdf(input_path, staging_dir)
            elif source is MediaCategory.SUBTITLE and spec.category is MediaCategory.VIDEO:
                canvas_seconds = self.classifier.duration(input_path) or SUBTITLE_DEFAULT_SECONDS

            progress_file = job_dir / "progress.txt"
            stderr_file = job_dir / "stderr.txt"

            def produce(output_path: Path):
                cmd_list = self.build_transcoder_command(
                    source, spec, input_path, output_path, progress_file, page_mode, canvas_seconds
                )
                self._run_transcoder(
                    request, cmd_list, output_path, progress_file, stderr_file, total_duration, track_percentage
                )

            output_path = self._with_output_path(
                request, spec, multi=page_mode is MultiPageMode.SEPARATE, produce=produce
            )
        finally:
            shutil.rmtree(job_dir, ignore_errors=True)
        return ConversionOutcome.success(request.input_path, output_path)

    def build_transcoder_command(
        self,
        source: MediaCategory,
        spec: FormatSpec,
        input_path: Path,
        output_path: Path,
        progress_file: Path,
        page_mode: MultiPageMode = MultiPageMode.SINGLE,
        canvas_seconds: float = 0.0,
    ) -> List[str]:
        """
        Builds the transcoder argument list for one conversion.

        The command never overwrites an existing file (`-n`) and writes its
        progress report to `progress_file`. Structural flags are added per case:

        - Subtitle to video burns the subtitles onto a black canvas.
        - Plain text to image draws the text onto a white canvas.
        - Video to audio drops the video streams.
        - Document (staged as PDF) to image extracts one frame, numbered pages,
          or a looping animation depending on `page_mode`.
        - Image to a still-only image format keeps a single frame.
        """
        cmd_list = [self.toolchain.ffmpeg, "-hide_banner", "-nostdin", "-n"]
        target = spec.category

        if source is MediaCategory.SUBTITLE and target is MediaCategory.VIDEO:
            seconds = canvas_seconds or SUBTITLE_DEFAULT_SECONDS
            canvas = f"color=c=black:s={SUBTITLE_CANVAS_SIZE}:r={SUBTITLE_CANVAS_RATE}:d={seconds:.3f}"
            cmd_list += ["-f", "lavfi", "-i", canvas, "-vf", f"subtitles=filename={escape_filter_path(input_path)}"]
        elif source is MediaCategory.DOCUMENT and is_plain_text(input_path):
            canvas = f"color=c=white:s={TEXT_CANVAS_SIZE}"
            drawtext = (
                f"drawtext=textfile={escape_filter_path(input_path)}"
                f":fontsize={TEXT_FONT_SIZE}:fontcolor=black:x=40:y=40"
            )
            cmd_list += ["-f", "lavfi", "-i", canvas, "-vf", drawtext, "-frames:v", "1"]
        else:
            cmd_list += ["-i", str(input_path)]
            if source is MediaCategory.VIDEO and target is MediaCategory.AUDIO:
                cmd_list.append("-vn")
            elif source is MediaCategory.DOCUMENT:
                if page_mode is MultiPageMode.SEPARATE:
                    cmd_list += ["-start_number", "1"]
                elif page_mode is MultiPageMode.ANIMATED:
                    cmd_list += ["-loop", "0"]
                else:
                    cmd_list += ["-frames:v", "1"]
            elif source is MediaCategory.IMAGE and spec.identifier not in ANIMATED_IMAGE_FORMATS:
                cmd_list += ["-frames:v", "1"]

        cmd_list += list(spec.transcoder_args)
        cmd_list += ["-progress", str(progress_file), "-nostats", str(output_path)]
        return cmd_list

    def _run_transcoder(
        self,
        request: ConversionRequest,
        cmd_list: List[str],
        output_path: Path,
        progress_file: Path,
        stderr_file: Path,
        total_duration: float,
        track_percentage: bool,
    ):
        target = first_page(output_path)
        if target.exists():
            raise OutputCollisionException(f"Output path was taken by another writer: {target.name}")
        progress_file.unlink(missing_ok=True)

        monitor = ProgressMonitor(
            progress_file,
            request,
            total_duration,
            self._emit_status,
            interval=self.poll_interval,
            track_percentage=track_percentage,
        )
        try:
            try:
                with SupervisedProcess(
                    cmd_list,
                    stderr_path=stderr_file,
                    timeout=self.timeout,
                    cancel_event=self.cancel_event,
                    poll_interval=self.poll_interval,
                ) as process:
                    monitor.start()
                    return_code = process.wait()
            finally:
                monitor.stop()
        except (ConversionCancelled, KeyboardInterrupt):
            remove_output(output_path)
            raise
        except subprocess.TimeoutExpired:
            remove_output(output_path)
            raise TranscodeTimeoutException(
                f"Conversion timed out after {self.timeout}s: {request.display_name}",
                command=cmd_list,
                stderr_tail=read_tail(stderr_file, STDERR_TAIL_LINES),
            ) from None
        except OSError as e:
            raise TranscodeFailedException(
                f"Transcoder '{cmd_list[0]}' could not be started: {e}", command=cmd_list
            ) from e

        stderr_tail = read_tail(stderr_file, STDERR_TAIL_LINES)
        if return_code != 0:
            if _ALREADY_EXISTS_MARKER in stderr_tail:
                raise OutputCollisionException(f"Output path was taken by another writer: {target.name}")
            remove_output(output_path)
            last_line = stderr_tail.splitlines()[-1] if stderr_tail else "no error output"
            raise TranscodeFailedException(
                f"Conversion failed: {request.display_name} (exit code {return_code}: {last_line})",
                command=cmd_list,
                stderr_tail=stderr_tail,
            )

        if not target.is_file() or target.stat().st_size == 0:
            remove_output(output_path)
            raise TranscodeFailedException(
                f"Conversion produced no output: {request.display_name}",
                command=cmd_list,
                stderr_tail=stderr_tail,
            )

        logger.debug(f"Wrote {target.name} ({formatted_size(target.stat().st_size)})")
        self._emit(request, "Done", 100 if track_percentage and total_duration > 0 else None)

    # --- Helpers ---

    def _with_output_path(
        self,
        request: ConversionRequest,
        spec: FormatSpec,
        multi: bool,
        produce: Callable[[Path], None],
    ) -> Path:
        """
        Reserves an output path and calls `produce` with it.

        If `produce` reports a collision (another writer created the file after it
        was allocated), a fresh path is reserved and `produce` is called again, up
        to `MAX_ALLOCATION_ATTEMPTS` times.
        """
        for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
            output_path = self.allocator.reserve(request.input_path, spec.extension, multi, request.target_dir)
            try:
                produce(output_path)
                return output_path
            except OutputCollisionException as e:
                logger.warning(f"{e} (attempt {attempt} of {MAX_ALLOCATION_ATTEMPTS})")
            finally:
                self.allocator.release(output_path)
        raise OutputAllocationException(
            f"Could not secure an output path for {request.display_name} after {MAX_ALLOCATION_ATTEMPTS} attempts"
        )

    def _check_cancelled(self):
        if self.cancel_event.is_set():
            raise ConversionCancelled("Conversion cancelled")

    def _emit(self, request: ConversionRequest, text: str, percentage: Optional[int] = None):
        self._emit_status(
            StatusUpdate(
                name=request.display_name,
                current=request.current,
                total=request.total,
                text=text,
                percentage=percentage,
            )
        )

    def _emit_status(self, status: StatusUpdate):
        try:
            self.reporter.update(status)
        except Exception as e:
            logger.warning(f"Status reporter failed for {status.name}: {e}")

    def _record_failure(self, request: ConversionRequest, error: Exception):
        if self.error_log is None:
            return
        lines = [f"File: {request.input_path}", f"Target format: {request.output_format}", f"Reason: {error}"]
        command = getattr(error, "command", None)
        if command:
            lines.append(f"Command: {display_command(command)}")
        stderr_tail = getattr(error, "stderr_tail", "")
        if stderr_tail:
            lines.append(f"stderr:\n{stderr_tail}")
        self.error_log.write(*lines)

    @staticmethod
    def _describe(outcome: ConversionOutcome) -> str:
        if outcome.members:
            return f"{len(outcome.members)} file(s)"
        return outcome.output_path.name if outcome.output_path else "?"
