"""
Locations of the external tools the converter drives.

A `Toolchain` is built once from the configuration (`Toolchain.from_config()`)
and handed to the services that launch subprocesses. Tests construct their own
instance pointing at fake executables.
"""
import shutil
import sys
from dataclasses import dataclass
from typing import List

from loguru import logger

from .common import (
    DOCUMENT_CONVERTER_COMMAND,
    DOCUMENT_CONVERTER_FALLBACK_COMMAND,
    FFMPEG_COMMAND,
    FFPROBE_COMMAND,
    MODULE_PATH,
    TAR_COMMAND,
    UNZIP_COMMAND,
)


def _resolve_module_executable(name: str) -> str:
    """
    Determines the executable path for one of the ffmpeg tools.

    The directory configured as `paths.ffmpeg_dir` takes priority. If it is not
    set, or the executable is not found there, the bare name is returned and the
    system PATH is relied upon. Platform-specific executable names (the '.exe'
    suffix on Windows) are handled here.

    Args:
        name: The tool name, e.g. "ffmpeg" or "ffprobe".

    Returns:
        The absolute path of the configured executable, or the bare name.
    """
    exe_name = f"{name}.exe" if sys.platform == "win32" else name

    if MODULE_PATH and MODULE_PATH.is_dir():
        configured_path = MODULE_PATH / exe_name
        if configured_path.is_file():
            logger.debug(f"Using {name} from configured path: '{configured_path}'")
            return str(configured_path)
        logger.warning(
            f"`ffmpeg_dir` is configured, but '{exe_name}' was not found there. Falling back to system PATH."
        )
    return name


@dataclass(frozen=True)
class Toolchain:
    ffmpeg: str = FFMPEG_COMMAND
    ffprobe: str = FFPROBE_COMMAND
    document_converter: str = DOCUMENT_CONVERTER_COMMAND
    document_converter_fallback: str = DOCUMENT_CONVERTER_FALLBACK_COMMAND
    unzip: str = UNZIP_COMMAND
    tar: str = TAR_COMMAND

    @classmethod
    def from_config(cls) -> "Toolchain":
        return cls(
            ffmpeg=_resolve_module_executable(FFMPEG_COMMAND),
            ffprobe=_resolve_module_executable(FFPROBE_COMMAND),
        )

    def missing_required(self) -> List[str]:
        """Returns the required tools (transcoder and prober) that cannot be found."""
        return [tool for tool in (self.ffmpeg, self.ffprobe) if shutil.which(tool) is None]

    def missing_optional(self) -> List[str]:
        """Returns the optional tools (document converters, extractors) that cannot be found."""
        optional = (
            self.document_converter,
            self.document_converter_fallback,
            self.unzip,
            self.tar,
        )
        return [tool for tool in optional if shutil.which(tool) is None]
