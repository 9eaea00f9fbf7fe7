"""
Determines the media category of a file.

Classification first looks at the file name: documents, subtitles and archives
are recognised by extension alone. Everything else is probed with `ffprobe` and
classified from the streams it reports. A file that cannot be probed is
classified as invalid; that is an answer ("cannot convert"), not an error.
"""

import subprocess
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

import ffmpeg
from loguru import logger

from ..config.common import PROBE_TIMEOUT_SECONDS
from ..config.formats import (
    ARCHIVE_EXTENSIONS,
    DOCUMENT_EXTENSIONS,
    STILL_IMAGE_CODECS,
    SUBTITLE_EXTENSIONS,
)
from ..domain.media import MediaCategory, MediaProbe
from ..utils.format_utils import contains_any_extensions

_CacheKey = Tuple[Path, int, int]


def category_from_extension(path: Path) -> Optional[MediaCategory]:
    """Returns the category implied by the file name alone, or None if probing is needed."""
    if contains_any_extensions(path, ARCHIVE_EXTENSIONS):
        return MediaCategory.ARCHIVE
    if contains_any_extensions(path, DOCUMENT_EXTENSIONS):
        return MediaCategory.DOCUMENT
    if contains_any_extensions(path, SUBTITLE_EXTENSIONS):
        return MediaCategory.SUBTITLE
    return None


def category_from_probe(probe: MediaProbe) -> MediaCategory:
    """
    Classifies probed media by its streams.

    A file whose only streams are video streams carrying a still-image codec is
    an image. Otherwise any video stream makes it a video, and any audio stream
    makes it audio.
    """
    video_codecs = probe.video_codecs
    has_audio = bool(probe.audio_streams)
    if video_codecs and not has_audio and all(codec in STILL_IMAGE_CODECS for codec in video_codecs):
        return MediaCategory.IMAGE
    if video_codecs:
        return MediaCategory.VIDEO
    if has_audio:
        return MediaCategory.AUDIO
    return MediaCategory.INVALID


class MediaClassifier:
    """
    Classifies files and probes their duration.

    Probe results are cached per file (keyed by resolved path, size and
    modification time), so a file is probed at most once even when it is
    classified by the batch pipeline and again by the executor. The cache is
    safe to share between worker threads.

    Attributes:
        ffprobe_cmd (str): The ffprobe executable.
        probe_timeout (float): Seconds after which a probe is abandoned.
    """

    def __init__(self, ffprobe_cmd: str = "ffprobe", probe_timeout: float = PROBE_TIMEOUT_SECONDS):
        self.ffprobe_cmd = ffprobe_cmd
        self.probe_timeout = probe_timeout
        self._probe_cache: Dict[_CacheKey, Optional[MediaProbe]] = {}
        self._lock = threading.Lock()

    def classify(self, path: Path) -> MediaCategory:
        if not path.is_file():
            logger.warning(f"Not a regular file, cannot classify: {path}")
            return MediaCategory.INVALID

        category = category_from_extension(path)
        if category is None:
            probe = self.probe(path)
            category = category_from_probe(probe) if probe else MediaCategory.INVALID
        logger.debug(f"Classified {path.name} as {category.label}")
        return category

    def duration(self, path: Path) -> float:
        """Returns the media duration in seconds, or 0.0 when unknown."""
        probe = self.probe(path)
        return probe.duration if probe else 0.0

    def probe(self, path: Path) -> Optional[MediaProbe]:
        try:
            stat = path.stat()
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return None
        key = (path.resolve(), stat.st_size, stat.st_mtime_ns)
        with self._lock:
            if key in self._probe_cache:
                return self._probe_cache[key]

        probe = self._run_probe(path)
        with self._lock:
            self._probe_cache[key] = probe
        return probe

    def _run_probe(self, path: Path) -> Optional[MediaProbe]:
        try:
            return MediaProbe.run(path, ffprobe_cmd=self.ffprobe_cmd, timeout=self.probe_timeout)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode("utf-8", errors="replace").strip() if e.stderr else ""
            logger.debug(f"ffprobe rejected {path.name}: {stderr}")
        except subprocess.TimeoutExpired:
            logger.warning(f"ffprobe timed out after {self.probe_timeout}s on {path.name}")
        except (OSError, ValueError) as e:
            logger.warning(f"ffprobe could not be run on {path.name}: {e}")
        return None
