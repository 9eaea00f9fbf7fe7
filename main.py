"""
Main entry point for the Media Converter application.

This script initializes the application, parses command-line arguments,
and runs the batch pipeline for the requested output format. Its return value is
the process exit status:

- 0: every file was converted.
- 1: some files failed, or a required tool is missing.
- 2: usage error (no files, unknown output format).
- 130: the run was cancelled.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from media_converter.cli import get_args
from media_converter.config.common import (
    LOG_FILE_ROTATION,
    LOGGER_FILE_FORMAT,
    LOGGER_FORMAT,
    TRANSCODE_TIMEOUT_SECONDS,
)
from media_converter.config.toolchain import Toolchain
from media_converter.domain.exceptions import ConversionCancelled, UsageError
from media_converter.domain.formats import FormatRegistry
from media_converter.domain.media import MediaCategory
from media_converter.pipeline.batch_pipeline import BatchPipeline
from media_converter.services.logging_service import SummaryReport
from media_converter.services.status_reporter import LogStatusReporter
from media_converter.utils.dependency_check import verify_toolchain

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130

USAGE = "Usage: media-converter <format> <file>..."

# Configure the logger for initial setup.
# The level is overridden later by command-line arguments.
logger.remove()
logger.add(sys.stderr, level="INFO", format=LOGGER_FORMAT)


def configure_logging(level: str, log_file: Optional[Path] = None):
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOGGER_FORMAT)
    if log_file:
        logger.add(log_file, level="DEBUG", format=LOGGER_FILE_FORMAT, rotation=LOG_FILE_ROTATION, encoding="utf-8")


def format_listing(registry: FormatRegistry) -> str:
    """Renders the registry grouped by category, one format per line."""
    lines: List[str] = []
    for category in MediaCategory:
        specs = registry.by_category(category)
        if not specs:
            continue
        lines.append(f"{category.label.capitalize()} formats:")
        lines.extend(f"  {spec.identifier:<6} {spec.description}" for spec in specs)
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Runs the converter and returns the exit status.

    This function performs the following steps:
    1. Parses command-line arguments and configures the logger.
    2. Validates the output format and the file list.
    3. Verifies that the external tools are installed.
    4. Runs the batch pipeline and optionally writes the summary report.
    """
    args = get_args(argv)
    configure_logging(args.log_level, args.log_file)
    logger.debug(f"Parsed arguments: {args}")

    registry = FormatRegistry.from_table()
    if args.list_formats:
        print(format_listing(registry))
        return EXIT_SUCCESS

    if args.format is None or not args.files:
        logger.error(f"No input files given.\n{USAGE}")
        return EXIT_USAGE
    if args.format not in registry:
        logger.error(f"Unsupported format: {args.format}. Use --list-formats to see the supported formats.")
        return EXIT_USAGE

    toolchain = Toolchain.from_config()
    if not verify_toolchain(toolchain):
        return EXIT_FAILURE

    pipeline = BatchPipeline(
        registry,
        toolchain=toolchain,
        reporter=LogStatusReporter(page_mode=args.page_mode),
        jobs=args.jobs,
        scratch_root=args.scratch_dir,
        timeout=args.timeout or TRANSCODE_TIMEOUT_SECONDS,
        error_log_dir=args.error_log_dir,
    )

    started = datetime.now()
    try:
        summary = pipeline.run(args.files, args.format)
    except UsageError as e:
        logger.error(f"{e}\n{USAGE}")
        return EXIT_USAGE
    except (ConversionCancelled, KeyboardInterrupt):
        logger.warning("Conversion cancelled.")
        return EXIT_CANCELLED

    if args.report:
        SummaryReport(args.report).write(summary, args.format, started, datetime.now())

    return EXIT_SUCCESS if summary.all_succeeded else EXIT_FAILURE


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
