"""
Command-Line Interface (CLI) setup for the Media Converter.

This module uses Python's `argparse` to define and parse the command-line
arguments that control the application's behavior. The positional interface is
`<format> <file>...`; everything else is optional.
"""
import argparse
from pathlib import Path
from typing import Optional, Sequence

from .domain.models import MultiPageMode


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="media-converter",
        description="Convert audio, video, image, document, subtitle and archive files to another format.",
    )
    parser.add_argument(
        "format", nargs="?", default=None, help="Output format identifier, e.g. mp3, mp4, png, pdf."
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to convert.")
    parser.add_argument(
        "--page-mode", type=str, default=None, choices=[mode.value for mode in MultiPageMode],
        help="How multi-page documents become images. Asked interactively when omitted."
    )
    parser.add_argument(
        "--jobs", type=_positive_int, default=1, help="Number of files to convert at the same time."
    )
    parser.add_argument(
        "--timeout", type=_positive_float, default=None,
        help="Time limit in seconds for a single conversion. Defaults to the configured limit."
    )
    parser.add_argument(
        "--scratch-dir", type=Path, default=None,
        help="Directory for temporary files. Useful for pointing to a RAM disk."
    )
    parser.add_argument(
        "--report", type=Path, default=None, help="Write a YAML summary of the run to this file."
    )
    parser.add_argument(
        "--error-log-dir", type=Path, default=None,
        help="Directory receiving a text log with diagnostics for failed conversions."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level."
    )
    parser.add_argument(
        "--log-file", type=Path, default=None, help="Also write the log to this file (rotated)."
    )
    parser.add_argument(
        "--list-formats", action="store_true", help="List the supported output formats and exit."
    )
    return parser


def get_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parses command-line arguments for the Media Converter.

    Args:
        argv: The arguments to parse. Defaults to `sys.argv[1:]`.

    Returns:
        argparse.Namespace: An object containing the parsed command-line
                            arguments as attributes. `page_mode` is converted
                            to a `MultiPageMode` (or None).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.page_mode is not None:
        args.page_mode = MultiPageMode(args.page_mode)

    # Validate scratch_dir if provided. If it doesn't exist, try to create it.
    if args.scratch_dir:
        if not args.scratch_dir.is_dir():
            try:
                args.scratch_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                parser.error(
                    f"The specified scratch directory '{args.scratch_dir}' is not a valid directory "
                    f"and could not be created: {e}"
                )
        args.scratch_dir = args.scratch_dir.resolve()

    return args
