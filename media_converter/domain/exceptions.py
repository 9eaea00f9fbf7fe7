"""
Defines custom exception types for the Media Converter application.

These exceptions allow for more specific and expressive error handling throughout
the conversion pipeline. Per-file problems derive from `ConversionException` and are
turned into a failed `ConversionOutcome` by the conversion executor, so they never
abort sibling files in a batch. `UsageError` is fatal to the whole run, and
`ConversionCancelled` unwinds the batch when it is aborted.

All custom exceptions inherit from the base `MediaConverterException`.
"""


class MediaConverterException(Exception):
    """Base class for all custom exceptions in the Media Converter application."""

    pass


# --- Run-level Exceptions ---
class UsageError(MediaConverterException):
    """
    Raised for invocation errors that make the whole run pointless.

    Examples are an empty list of input files or an output-format identifier
    that is not in the registry. These are detected before any file is touched.
    """

    pass


class UnsupportedFormatError(UsageError):
    """Raised when an output-format identifier is not known to the registry."""

    pass


class ConversionCancelled(MediaConverterException):
    """
    Raised when the surrounding batch is aborted.

    This is not a per-file failure: it propagates out of the executor and the
    orchestrator after their cleanup has run, so no outcome is recorded for the
    interrupted file.
    """

    pass


# --- Per-file Exceptions ---
class ConversionException(MediaConverterException):
    """Base class for failures that concern a single conversion request."""

    pass


class InvalidMediaException(ConversionException):
    """
    Raised when an input classifies as invalid.

    This is a terminal classification ("cannot convert"), not a system fault:
    the file is either unreadable or has no audio, video or image content.
    """

    pass


class IncompatibleFormatException(ConversionException):
    """
    Raised when the source category cannot be converted to the target category.

    For example, a document cannot become audio and an image cannot become video.
    The request is refused before any subprocess is spawned.
    """

    pass


class ArchiveExtractionException(ConversionException):
    """Raised when the archive extraction tool fails. The whole archive request fails."""

    pass


class EmptyArchiveException(ConversionException):
    """
    Raised when an archive was extracted successfully but contained no
    convertible media. Distinct from an extraction failure.
    """

    pass


class DocumentConversionException(ConversionException):
    """Raised when the document converter and its fallback both fail."""

    pass


class TranscodeFailedException(ConversionException):
    """
    Raised when the transcoder exits with a non-zero code, or exits cleanly but
    leaves a missing or empty output file.

    Attributes:
        command (Optional[List[str]]): The command line that failed, if one was run.
        stderr_tail (str): The last lines the command wrote to stderr.
    """

    def __init__(self, message: str, command=None, stderr_tail: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr_tail = stderr_tail


class TranscodeTimeoutException(TranscodeFailedException):
    """Raised when the transcoder exceeds its configured time limit and is killed."""

    pass


class OutputCollisionException(ConversionException):
    """
    Raised when an allocated output path was taken by another writer before the
    transcoder could create it. The executor reacts by allocating a new path.
    """

    pass


class OutputAllocationException(ConversionException):
    """Raised when no free output path could be secured after repeated attempts."""

    pass
