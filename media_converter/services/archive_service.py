"""
Extracts archives into scratch directories and collects their convertible members.

Each archive kind is handled by its own extraction command (`unzip` for zip,
`tar` with the matching decompression flag for the tar family). After extraction
every regular file is classified; invalid members and nested archives are dropped,
so expansion never goes deeper than one level.
"""

import shutil
import subprocess
import tempfile
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

from loguru import logger

from ..config.common import ARCHIVE_DIR_PREFIX, EXTRACT_TIMEOUT_SECONDS
from ..config.toolchain import Toolchain
from ..domain.exceptions import ArchiveExtractionException, EmptyArchiveException
from ..domain.media import MediaCategory
from ..utils.format_utils import matching_extension
from ..utils.process_utils import run_supervised
from .classifier import MediaClassifier


class ArchiveKind(Enum):
    ZIP = "zip"
    TAR = "tar"
    TAR_GZ = "tar.gz"
    TAR_BZ2 = "tar.bz2"


_KIND_BY_EXTENSION = {
    ".zip": ArchiveKind.ZIP,
    ".tar": ArchiveKind.TAR,
    ".tar.gz": ArchiveKind.TAR_GZ,
    ".tgz": ArchiveKind.TAR_GZ,
    ".tar.bz2": ArchiveKind.TAR_BZ2,
    ".tbz2": ArchiveKind.TAR_BZ2,
}

_TAR_FLAGS = {
    ArchiveKind.TAR: "-xf",
    ArchiveKind.TAR_GZ: "-xzf",
    ArchiveKind.TAR_BZ2: "-xjf",
}

# unzip exits with 1 when it only emitted warnings.
_ACCEPTED_EXIT_CODES = {
    ArchiveKind.ZIP: (0, 1),
    ArchiveKind.TAR: (0,),
    ArchiveKind.TAR_GZ: (0,),
    ArchiveKind.TAR_BZ2: (0,),
}


def archive_kind(path: Path) -> Optional[ArchiveKind]:
    extension = matching_extension(path, _KIND_BY_EXTENSION)
    return _KIND_BY_EXTENSION[extension] if extension else None


class ArchiveExpander:
    """
    Expands one archive into a scratch directory.

    Attributes:
        classifier (MediaClassifier): Used to classify the extracted members.
        toolchain (Toolchain): Supplies the `unzip` and `tar` executables.
        timeout (float): Seconds an extraction may take.
        cancel_event (Optional[threading.Event]): Aborts a running extraction.
    """

    def __init__(
        self,
        classifier: MediaClassifier,
        toolchain: Toolchain,
        timeout: float = EXTRACT_TIMEOUT_SECONDS,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.classifier = classifier
        self.toolchain = toolchain
        self.timeout = timeout
        self.cancel_event = cancel_event

    @contextmanager
    def expansion_dir(self, scratch_root: Path) -> Iterator[Path]:
        """Creates a private directory under `scratch_root` and removes it on exit."""
        directory = Path(tempfile.mkdtemp(prefix=ARCHIVE_DIR_PREFIX, dir=scratch_root))
        try:
            yield directory
        finally:
            shutil.rmtree(directory, ignore_errors=True)

    def extraction_command(self, kind: ArchiveKind, archive_path: Path, destination: Path) -> List[str]:
        if kind is ArchiveKind.ZIP:
            return [self.toolchain.unzip, "-qq", "-o", str(archive_path), "-d", str(destination)]
        return [self.toolchain.tar, _TAR_FLAGS[kind], str(archive_path), "-C", str(destination)]

    def extract(self, archive_path: Path, destination: Path) -> ArchiveKind:
        kind = archive_kind(archive_path)
        if kind is None:
            raise ArchiveExtractionException(f"Unsupported archive type: {archive_path.name}")

        cmd_list = self.extraction_command(kind, archive_path, destination)
        try:
            return_code = run_supervised(cmd_list, timeout=self.timeout, cancel_event=self.cancel_event)
        except FileNotFoundError:
            raise ArchiveExtractionException(
                f"Failed to extract {archive_path.name}: '{cmd_list[0]}' is not installed"
            ) from None
        except subprocess.TimeoutExpired:
            raise ArchiveExtractionException(
                f"Failed to extract {archive_path.name}: extraction timed out after {self.timeout}s"
            ) from None
        except OSError as e:
            raise ArchiveExtractionException(f"Failed to extract {archive_path.name}: {e}") from e

        if return_code not in _ACCEPTED_EXIT_CODES[kind]:
            raise ArchiveExtractionException(
                f"Failed to extract {kind.value} archive: {archive_path.name} (exit code {return_code})"
            )
        logger.debug(f"Extracted {archive_path.name} ({kind.value}) into {destination}")
        return kind

    def expand(self, archive_path: Path, scratch_dir: Path) -> List[Path]:
        """
        Extracts `archive_path` into `scratch_dir` and returns its convertible members.

        Members are returned in sorted path order. Members classified as invalid
        or as archives are skipped.

        Raises:
            ArchiveExtractionException: If the extraction tool fails.
            EmptyArchiveException: If no member is convertible.
        """
        self.extract(archive_path, scratch_dir)

        members: List[Path] = []
        for candidate in sorted(scratch_dir.rglob("*")):
            if candidate.is_symlink() or not candidate.is_file():
                continue
            category = self.classifier.classify(candidate)
            if category in (MediaCategory.INVALID, MediaCategory.ARCHIVE):
                logger.debug(f"Skipping archive member {candidate.name} ({category.label})")
                continue
            members.append(candidate)

        if not members:
            raise EmptyArchiveException(f"No convertible media found in archive: {archive_path.name}")
        logger.info(f"Found {len(members)} convertible file(s) in {archive_path.name}")
        return members
