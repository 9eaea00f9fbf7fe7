"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across the entire Media Converter application. It centralizes parameters for
logging, external tool locations, subprocess timeouts, progress polling and output
naming. It also handles the loading of user-specific configurations from an
external YAML file, allowing for easy customization without modifying the source code.
"""
import os
from pathlib import Path

import yaml
from loguru import logger

# --- User-Defined Configuration ---
# This block loads user-specific settings from a 'config.user.yaml' file located
# at the project root, or from the file named by the MEDIA_CONVERTER_CONFIG
# environment variable. Every key is optional.
#
#   paths:
#     ffmpeg_dir: /opt/ffmpeg/bin
#   tools:
#     document_converter: soffice
#     document_converter_fallback: unoconv
#     unzip: unzip
#     tar: tar
#   timeouts:
#     transcode_seconds: 14400
#     probe_seconds: 30

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = Path(
    os.environ.get("MEDIA_CONVERTER_CONFIG", PROJECT_ROOT / "config.user.yaml")
)

# The directory containing the ffmpeg and ffprobe executables. If None, the
# executables are expected to be available in the system's PATH.
MODULE_PATH: Path | None = None

# Executable names for the external collaborators.
FFMPEG_COMMAND = "ffmpeg"
FFPROBE_COMMAND = "ffprobe"
DOCUMENT_CONVERTER_COMMAND = "soffice"
DOCUMENT_CONVERTER_FALLBACK_COMMAND = "unoconv"
UNZIP_COMMAND = "unzip"
TAR_COMMAND = "tar"

# --- Timeouts (seconds) ---
# Upper bound for a single transcoder run. Expiry is reported as a distinct
# "timed out" failure. None disables the limit.
TRANSCODE_TIMEOUT_SECONDS: float | None = 4 * 60 * 60
# Metadata probing that takes longer than this classifies the file as invalid.
PROBE_TIMEOUT_SECONDS: float = 30
EXTRACT_TIMEOUT_SECONDS: float = 10 * 60
DOCUMENT_TIMEOUT_SECONDS: float = 10 * 60
# Grace period between SIGTERM and SIGKILL when tearing down a process group.
TERMINATE_GRACE_SECONDS: float = 5


def _load_user_config(config_path: Path) -> dict:
    if not config_path.is_file():
        logger.debug(f"User config '{config_path}' not found. Relying on system PATH for executables.")
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load or parse '{config_path}': {e}")
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Ignoring '{config_path}': expected a mapping at the top level.")
        return {}
    return loaded


_user_config = _load_user_config(USER_CONFIG_PATH)

_paths_config = _user_config.get("paths") or {}
if _paths_config.get("ffmpeg_dir"):
    MODULE_PATH = Path(_paths_config["ffmpeg_dir"])

_tools_config = _user_config.get("tools") or {}
DOCUMENT_CONVERTER_COMMAND = _tools_config.get("document_converter", DOCUMENT_CONVERTER_COMMAND)
DOCUMENT_CONVERTER_FALLBACK_COMMAND = _tools_config.get(
    "document_converter_fallback", DOCUMENT_CONVERTER_FALLBACK_COMMAND
)
UNZIP_COMMAND = _tools_config.get("unzip", UNZIP_COMMAND)
TAR_COMMAND = _tools_config.get("tar", TAR_COMMAND)

_timeouts_config = _user_config.get("timeouts") or {}
if "transcode_seconds" in _timeouts_config:
    TRANSCODE_TIMEOUT_SECONDS = _timeouts_config["transcode_seconds"]
PROBE_TIMEOUT_SECONDS = _timeouts_config.get("probe_seconds", PROBE_TIMEOUT_SECONDS)


# --- Logging Configuration ---

# The format string for the Loguru logger.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - <level>{message}</level>"
)

# Plain variant used for the optional --log-file sink.
LOGGER_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
LOG_FILE_ROTATION = "10 MB"

# Filename of the plain-text diagnostics log written into --error-log-dir.
ERROR_LOG_FILENAME = "conversion_errors.txt"

# Number of trailing stderr lines kept in a failure reason.
STDERR_TAIL_LINES = 5


# --- Progress Monitoring ---

# Interval at which the transcoder's progress report is polled.
PROGRESS_POLL_INTERVAL = 1.0
# Bytes read from the end of the progress report on each poll.
PROGRESS_TAIL_BYTES = 4096


# --- Output Naming ---

CONVERTED_SUFFIX = "_converted"
# printf-style page placeholder understood by the transcoder's image muxer.
PAGE_PLACEHOLDER = "%03d"
FIRST_PAGE_NUMBER = 1
# A freshly allocated name can be taken by a concurrent writer before the
# transcoder opens it. Allocation is retried this many times.
MAX_ALLOCATION_ATTEMPTS = 5
MAX_SUFFIX_ATTEMPTS = 10_000


# --- Scratch Directories ---

SCRATCH_DIR_PREFIX = "media_converter_"
ARCHIVE_DIR_PREFIX = "archive_"
STAGING_DIR_PREFIX = "staging_"
JOB_DIR_PREFIX = "job_"


# --- Canvas Settings for Synthesised Inputs ---

# Subtitle files rendered to video are burned onto a black canvas.
SUBTITLE_CANVAS_SIZE = "1280x720"
SUBTITLE_CANVAS_RATE = 25
# Used when the subtitle file reports no duration.
SUBTITLE_DEFAULT_SECONDS = 60.0

# Plain-text documents rasterised to an image are drawn on a white A4-ish canvas.
TEXT_CANVAS_SIZE = "1240x1754"
TEXT_FONT_SIZE = 24
