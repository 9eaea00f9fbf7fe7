"""
Decides which (source category -> target category) conversions are permitted.

The rules live in a single table, `ALLOWED_TARGETS`. `validate()` is a pure
function of two categories; `CompatibilityValidator` applies it to a concrete
request, resolving the target category through the format registry and raising
a specific, user-facing reason on rejection.
"""
from pathlib import Path
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional

from ..domain.exceptions import IncompatibleFormatException, InvalidMediaException
from ..domain.formats import FormatRegistry, FormatSpec
from ..domain.media import MediaCategory

_A = MediaCategory

ALLOWED_TARGETS: Mapping[MediaCategory, FrozenSet[MediaCategory]] = MappingProxyType({
    _A.AUDIO: frozenset({_A.AUDIO}),
    _A.VIDEO: frozenset({_A.AUDIO, _A.VIDEO}),
    _A.IMAGE: frozenset({_A.IMAGE}),
    _A.DOCUMENT: frozenset({_A.IMAGE, _A.DOCUMENT}),
    _A.SUBTITLE: frozenset({_A.VIDEO, _A.SUBTITLE}),
    _A.ARCHIVE: frozenset(),
    _A.INVALID: frozenset(),
})


def validate(source: MediaCategory, target: MediaCategory) -> bool:
    """Returns True if a file of category `source` may be converted to `target`."""
    return target in ALLOWED_TARGETS[source]


def rejection_reason(source: MediaCategory, target: MediaCategory, name: str) -> Optional[str]:
    """Returns the user-facing reason a conversion is refused, or None if it is allowed."""
    if source is MediaCategory.INVALID:
        return f"Not a valid media file: {name}"
    if validate(source, target):
        return None
    return f"Cannot convert {source.label} to {target.label}: {name}"


class CompatibilityValidator:
    def __init__(self, registry: FormatRegistry):
        self.registry = registry

    def check(self, path: Path, source: MediaCategory, output_format: str) -> FormatSpec:
        """
        Validates a request and returns the target's `FormatSpec`.

        Raises:
            InvalidMediaException: If the source classified as invalid.
            IncompatibleFormatException: If the category pair is not allowed.
            UnsupportedFormatError: If the output format is unknown.
        """
        spec = self.registry.get(output_format)
        reason = rejection_reason(source, spec.category, path.name)
        if reason is None:
            return spec
        if source is MediaCategory.INVALID:
            raise InvalidMediaException(reason)
        raise IncompatibleFormatException(reason)
