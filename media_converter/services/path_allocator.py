"""
Derives non-colliding output paths from input paths.

`allocate_output_path()` is the pure naming rule: strip the input's extension,
append `_converted.<format>`, and add `_1`, `_2`, ... until the name is free on
disk. For multi-output conversions the name carries a zero-padded page
placeholder and the collision check is made against the first materialized page.

`OutputPathAllocator` adds the in-batch guarantee on top: names handed out by
`reserve()` are remembered under a lock until released, so two requests in the
same batch (even on different worker threads) never receive the same path.
"""
import threading
from pathlib import Path
from typing import Optional, Set

from loguru import logger

from ..config.common import (
    CONVERTED_SUFFIX,
    FIRST_PAGE_NUMBER,
    MAX_SUFFIX_ATTEMPTS,
    PAGE_PLACEHOLDER,
)
from ..domain.exceptions import OutputAllocationException


def _candidate(directory: Path, stem: str, output_format: str, n: int, multi: bool) -> Path:
    name = f"{stem}{CONVERTED_SUFFIX}"
    if n > 0:
        name = f"{name}_{n}"
    if multi:
        name = f"{name}_{PAGE_PLACEHOLDER}"
    return directory / f"{name}.{output_format}"


def first_page(path: Path) -> Path:
    """Materializes the first page of a multi-output pattern. Plain paths are returned as-is."""
    if PAGE_PLACEHOLDER not in path.name:
        return path
    return path.with_name(path.name.replace(PAGE_PLACEHOLDER, PAGE_PLACEHOLDER % FIRST_PAGE_NUMBER))


def is_pattern(path: Path) -> bool:
    return PAGE_PLACEHOLDER in path.name


def allocate_output_path(
    input_path: Path,
    output_format: str,
    multi: bool = False,
    output_dir: Optional[Path] = None,
    taken: Optional[Set[Path]] = None,
) -> Path:
    """
    Returns an output path (or page pattern, if `multi`) that does not exist.

    Args:
        input_path: The file being converted.
        output_format: The output-format identifier, used as the new extension.
        multi: If True, return a pattern with a page placeholder.
        output_dir: Directory for the output. Defaults to the input's directory.
        taken: Extra paths to treat as occupied.

    Raises:
        OutputAllocationException: If no free name is found within the attempt limit.
    """
    directory = output_dir if output_dir is not None else input_path.parent
    stem = input_path.stem
    taken = taken or set()
    for n in range(MAX_SUFFIX_ATTEMPTS):
        candidate = _candidate(directory, stem, output_format, n, multi)
        if candidate not in taken and not first_page(candidate).exists():
            return candidate
    raise OutputAllocationException(
        f"Cannot generate a unique output name in {directory} for {input_path.name}"
    )


class OutputPathAllocator:
    def __init__(self):
        self._lock = threading.Lock()
        self._reserved: Set[Path] = set()

    def allocate(self, input_path: Path, output_format: str, multi: bool = False, output_dir: Optional[Path] = None) -> Path:
        """Side-effect free allocation. Calling it twice with nothing in between yields the same path."""
        return allocate_output_path(input_path, output_format, multi, output_dir)

    def reserve(self, input_path: Path, output_format: str, multi: bool = False, output_dir: Optional[Path] = None) -> Path:
        """Allocates a path that is neither on disk nor reserved by another request, and reserves it."""
        with self._lock:
            path = allocate_output_path(input_path, output_format, multi, output_dir, taken=self._reserved)
            self._reserved.add(path)
        logger.debug(f"Reserved output path {path}")
        return path

    def release(self, path: Path):
        with self._lock:
            self._reserved.discard(path)

    @property
    def reserved(self) -> Set[Path]:
        with self._lock:
            return set(self._reserved)
