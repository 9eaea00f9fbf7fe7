"""
This module contains helper functions for formatting data into human-readable strings
and for matching file names against extension lists.
"""

from datetime import timedelta
from pathlib import Path
from typing import Iterable, Optional


def format_timedelta(td_object: timedelta) -> str:
    """
    Formats a timedelta object into a "HH:MM:SS" string.

    Args:
        td_object: The timedelta object to format.

    Returns:
        A string representing the timedelta in HH:MM:SS format.
        For example, a timedelta of 7261 seconds becomes "02:01:01".
        Returns "00:00:00" if the input is not a valid timedelta object.
    """
    if not isinstance(td_object, timedelta):
        return "00:00:00"

    total_seconds = int(td_object.total_seconds())
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def formatted_size(size_bytes: int) -> str:
    """
    Converts a size in bytes to a human-readable string (e.g., B, KB, MB, GB, TB).

    Args:
        size_bytes: The size of the file in bytes.

    Returns:
        A formatted string with the appropriate unit.
        For example, 1536 becomes "1.50 KB", and 2097152 becomes "2 MB".
    """
    if size_bytes < 0:
        size_bytes = 0

    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    factor = 1024.0

    if size_bytes == 0:
        return "0 B"

    for unit in units:
        if size_bytes < factor:
            if unit == "B":
                return f"{size_bytes} {unit}"
            # Clean up ".00" for whole numbers (e.g., "2.00 MB" -> "2 MB").
            return f"{size_bytes:.2f} {unit}".replace(".00", "")
        size_bytes /= factor

    return f"{size_bytes:.2f} {units[-1]}".replace(".00", "")


def matching_extension(file_path_obj: Path, extensions_to_check: Iterable[str]) -> Optional[str]:
    """
    Returns the first extension from the list that the file name ends with.

    Matching is case-insensitive and works on the whole name rather than on
    `Path.suffix`, so compound extensions such as ".tar.gz" are recognised.
    Longer extensions are tried first, so "x.tar.gz" matches ".tar.gz" even if
    ".gz" is also listed.

    Args:
        file_path_obj: A `pathlib.Path` object for the file to check.
        extensions_to_check: File extensions, with or without the leading dot.

    Returns:
        The matching extension (normalized to lowercase with a leading dot), or None.
    """
    name = file_path_obj.name.lower()
    normalized = {
        ext.lower() if ext.startswith(".") else f".{ext.lower()}"
        for ext in extensions_to_check
    }
    for ext in sorted(normalized, key=len, reverse=True):
        if name.endswith(ext) and len(name) > len(ext):
            return ext
    return None


def contains_any_extensions(file_path_obj: Path, extensions_to_check: Iterable[str]) -> bool:
    """Checks if a file's name ends with any extension in the given list (case-insensitive)."""
    return matching_extension(file_path_obj, extensions_to_check) is not None
