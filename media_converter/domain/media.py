import json
import re
import subprocess
from enum import Enum
from pathlib import Path
from pprint import pformat
from typing import List, Optional

import ffmpeg
from loguru import logger


class MediaCategory(str, Enum):
    """The media category of a file, derived from its extension or its streams."""

    AUDIO = "audio"
    VIDEO = "video"
    IMAGE = "image"
    DOCUMENT = "document"
    SUBTITLE = "subtitle"
    ARCHIVE = "archive"
    INVALID = "invalid"

    @property
    def label(self) -> str:
        return self.value


def parse_duration(duration_str: str) -> float:
    """
    Parses a duration string into total seconds.

    This function is designed to handle the two duration formats emitted by the
    ffmpeg tools:
    1. A simple string representing a floating-point number of seconds (e.g., "3600.5").
    2. A timecode string in the format 'HH:MM:SS.sss' (e.g., "01:00:00.500").
       Hours are optional in the timecode format.

    Args:
        duration_str: The string containing the duration to parse.

    Returns:
        The total duration in seconds as a float. Returns 0.0 if parsing fails,
        including for the "N/A" placeholder.
    """
    duration_str = duration_str.strip()
    try:
        return max(0.0, float(duration_str))
    except ValueError:
        pattern = r"(?:(\d+):)?(\d{1,2}):(\d{1,2}(?:\.\d+)?)"
        match = re.fullmatch(pattern, duration_str)
        if match:
            hours_str, minutes_str, seconds_str = match.groups()
            hours = int(hours_str) if hours_str else 0
            minutes = int(minutes_str)
            seconds = float(seconds_str)
            return float(hours * 3600 + minutes * 60 + seconds)
        if duration_str != "N/A":
            logger.warning(f"Could not parse duration string: {duration_str}")
    return 0.0


class MediaProbe:
    """
    Wraps the `ffprobe` description of a file.

    Instances are created with `MediaProbe.run()`, which runs ffprobe the way
    `ffmpeg.probe` (from the ffmpeg-python library) does and keeps the parsed
    JSON. The properties expose the pieces the classifier and the executor need:
    the audio and video streams and the duration.

    Embedded cover art (a video stream flagged as an attached picture) is not
    counted as a video stream, so an mp3 with album art still reads as audio.

    Attributes:
        path (Path): The probed file.
        data (dict): The raw `ffprobe` output.
    """

    def __init__(self, path: Path, data: dict):
        self.path = path
        self.data = data

    @classmethod
    def run(cls, path: Path, ffprobe_cmd: str = "ffprobe", timeout: Optional[float] = None) -> "MediaProbe":
        """
        Probes a file with ffprobe.

        Builds the same command as `ffmpeg.probe`, but runs it through
        `subprocess.run` so that an ffprobe which outlives `timeout` is killed
        and reaped instead of being left behind.

        Raises:
            ffmpeg.Error: If ffprobe exits with a non-zero code.
            subprocess.TimeoutExpired: If ffprobe does not answer within `timeout`.
            OSError: If ffprobe cannot be started.
            ValueError: If ffprobe prints something that is not JSON.
        """
        cmd_list = [ffprobe_cmd, "-show_format", "-show_streams", "-of", "json", str(path)]
        result = subprocess.run(cmd_list, capture_output=True, timeout=timeout)
        if result.returncode != 0:
            raise ffmpeg.Error("ffprobe", result.stdout, result.stderr)
        data = json.loads(result.stdout.decode("utf-8"))
        logger.trace(f"Probe data for {path.name}:\n{pformat(data)}")
        return cls(path, data)

    @property
    def streams(self) -> List[dict]:
        return list(self.data.get("streams") or [])

    @property
    def video_streams(self) -> List[dict]:
        return [
            s for s in self.streams
            if s.get("codec_type") == "video"
            and not (s.get("disposition") or {}).get("attached_pic")
        ]

    @property
    def audio_streams(self) -> List[dict]:
        return [s for s in self.streams if s.get("codec_type") == "audio"]

    @property
    def video_codecs(self) -> List[str]:
        return [str(s.get("codec_name", "")).lower() for s in self.video_streams]

    @property
    def duration(self) -> float:
        """
        The duration in seconds, or 0.0 when the file reports none.

        The 'format' section is the most reliable source; individual stream
        durations are used as a fallback.
        """
        format_duration = (self.data.get("format") or {}).get("duration")
        if format_duration is not None:
            parsed = parse_duration(str(format_duration))
            if parsed > 0:
                return parsed
        for stream in self.streams:
            if "duration" in stream:
                parsed = parse_duration(str(stream["duration"]))
                if parsed > 0:
                    return parsed
        return 0.0
