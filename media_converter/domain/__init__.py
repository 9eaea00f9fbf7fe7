"""
This package contains the core domain models of the Media Converter application.

The domain layer represents the fundamental concepts of a batch conversion, independent
of the command line, the external tools and the file system layout.

Modules:
    exceptions.py: The exception taxonomy. Per-file failures, usage errors and
                   batch cancellation each have their own branch.
    media.py: `MediaCategory` and `MediaProbe`, a thin wrapper around `ffprobe`
              output that exposes streams and duration.
    formats.py: `FormatSpec` and the immutable `FormatRegistry`.
    models.py: The records flowing through a batch: `ConversionRequest`,
               `ConversionOutcome`, `BatchSummary`, `StatusUpdate` and
               `MultiPageMode`.
"""
