"""
Drives the external document converter.

The primary converter is invoked LibreOffice-style
(`--headless --convert-to <target> --outdir <dir> <input>`). If it fails, the
fallback converter is tried with unoconv-style arguments
(`-f <format> -o <output> <input>`) before the conversion is declared failed.
"""

import shutil
import subprocess
import threading
from pathlib import Path
from typing import List, Optional

from loguru import logger

from ..config.common import DOCUMENT_TIMEOUT_SECONDS
from ..config.toolchain import Toolchain
from ..domain.exceptions import DocumentConversionException
from ..utils.process_utils import run_supervised


def target_extension(convert_to: str) -> str:
    """Returns the file extension for a converter target such as "txt:Text"."""
    return convert_to.split(":", 1)[0].lower()


class DocumentConverter:
    def __init__(
        self,
        toolchain: Toolchain,
        timeout: float = DOCUMENT_TIMEOUT_SECONDS,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.toolchain = toolchain
        self.timeout = timeout
        self.cancel_event = cancel_event

    def primary_command(self, input_path: Path, convert_to: str, out_dir: Path) -> List[str]:
        return [
            self.toolchain.document_converter,
            "--headless",
            "--convert-to",
            convert_to,
            "--outdir",
            str(out_dir),
            str(input_path),
        ]

    def fallback_command(self, input_path: Path, convert_to: str, output_path: Path) -> List[str]:
        return [
            self.toolchain.document_converter_fallback,
            "-f",
            target_extension(convert_to),
            "-o",
            str(output_path),
            str(input_path),
        ]

    def convert(self, input_path: Path, convert_to: str, out_dir: Path) -> Path:
        """
        Converts a document into `out_dir` and returns the produced file.

        Args:
            input_path: The source document.
            convert_to: Converter target, e.g. "pdf" or "txt:Text".
            out_dir: Directory receiving `<input stem>.<extension>`.

        Raises:
            DocumentConversionException: If neither converter produced a non-empty file.
        """
        expected = out_dir / f"{input_path.stem}.{target_extension(convert_to)}"
        attempts = (
            ("primary", self.primary_command(input_path, convert_to, out_dir)),
            ("fallback", self.fallback_command(input_path, convert_to, expected)),
        )
        for label, cmd_list in attempts:
            if self._run(cmd_list) and expected.is_file() and expected.stat().st_size > 0:
                logger.debug(f"Document converter ({label}) produced {expected.name}")
                return expected
            logger.warning(f"Document converter ({label}) failed for {input_path.name}")
            expected.unlink(missing_ok=True)

        raise DocumentConversionException(f"Document conversion failed: {input_path.name}")

    def to_pdf(self, input_path: Path, staging_dir: Path) -> Path:
        """
        Stages a document as PDF in `staging_dir`.

        A document that already is a PDF is copied unchanged.
        """
        if input_path.suffix.lower() == ".pdf":
            staged = staging_dir / input_path.name
            shutil.copy2(input_path, staged)
            return staged
        return self.convert(input_path, "pdf", staging_dir)

    def _run(self, cmd_list: List[str]) -> bool:
        try:
            return run_supervised(cmd_list, timeout=self.timeout, cancel_event=self.cancel_event) == 0
        except FileNotFoundError:
            logger.warning(f"Document converter '{cmd_list[0]}' is not installed.")
        except subprocess.TimeoutExpired:
            logger.warning(f"Document converter '{cmd_list[0]}' timed out after {self.timeout}s.")
        except OSError as e:
            logger.warning(f"Document converter '{cmd_list[0]}' could not be started: {e}")
        return False
