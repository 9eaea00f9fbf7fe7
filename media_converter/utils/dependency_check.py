"""
This module verifies that the external tools required by the application are
available before a batch is started.
"""
import subprocess
from typing import Optional

from loguru import logger

from ..config.toolchain import Toolchain

INSTALL_HINT = (
    "Please install them using your package manager:\n"
    "For Ubuntu/Debian: sudo apt install ffmpeg\n"
    "For Fedora: sudo dnf install ffmpeg\n"
    "For Arch Linux: sudo pacman -S ffmpeg\n"
    "You can also specify their location as `paths.ffmpeg_dir` in the 'config.user.yaml' file."
)


def transcoder_version(toolchain: Toolchain) -> Optional[str]:
    """
    Returns the first line of `ffmpeg -version`, or None if it cannot be run.
    """
    try:
        result = subprocess.run(
            [toolchain.ffmpeg, "-version"],
            check=True,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=30,
        )
    except subprocess.CalledProcessError as e:
        logger.error(f"FFmpeg version command failed (return code {e.returncode}):\n{e.stderr}")
        return None
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.error(f"FFmpeg version command could not be run: {e}")
        return None
    lines = result.stdout.splitlines()
    return lines[0] if lines else ""


def verify_toolchain(toolchain: Toolchain) -> bool:
    """
    Checks that the transcoder and the prober can be found.

    Missing optional tools (document converters, archive extractors) only produce
    a warning; the conversions that need them fail individually.

    Returns:
        True if every required tool is available.
    """
    missing = toolchain.missing_required()
    if missing:
        logger.error(f"Missing dependencies: {' '.join(missing)}\n{INSTALL_HINT}")
        return False

    version = transcoder_version(toolchain)
    if version is None:
        return False
    logger.debug(f"FFmpeg version check successful: {version}")

    missing_optional = toolchain.missing_optional()
    if missing_optional:
        logger.warning(
            f"Optional tools not found: {' '.join(missing_optional)}. "
            f"Conversions that need them will fail."
        )
    return True
