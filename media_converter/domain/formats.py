"""
The format registry: an immutable lookup from output-format identifier to the
category it produces and the transcoder arguments that produce it.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .exceptions import UnsupportedFormatError
from .media import MediaCategory


@dataclass(frozen=True)
class FormatSpec:
    identifier: str
    category: MediaCategory
    transcoder_args: Tuple[str, ...] = field(default_factory=tuple)
    description: str = ""

    @property
    def extension(self) -> str:
        return self.identifier


class FormatRegistry:
    """
    Read-only mapping of output-format identifiers to `FormatSpec` records.

    A registry is constructed once at process start (normally with
    `FormatRegistry.from_table()`) and passed explicitly to the services that
    need it. Lookups are case-insensitive.
    """

    def __init__(self, specs: Iterable[FormatSpec]):
        table: Dict[str, FormatSpec] = {}
        for spec in specs:
            key = spec.identifier.lower()
            if key in table:
                raise ValueError(f"Duplicate output format identifier: {spec.identifier}")
            table[key] = spec
        self._specs: Mapping[str, FormatSpec] = MappingProxyType(table)

    @classmethod
    def from_table(cls, table: Optional[Mapping[str, tuple]] = None) -> "FormatRegistry":
        """
        Builds a registry from a table of `identifier: (category, description, args)`.

        Defaults to the application's format table in `config.formats`.
        """
        if table is None:
            from ..config.formats import FORMAT_TABLE

            table = FORMAT_TABLE
        return cls(
            FormatSpec(
                identifier=identifier,
                category=MediaCategory(category),
                transcoder_args=tuple(args),
                description=description,
            )
            for identifier, (category, description, args) in table.items()
        )

    def get(self, identifier: str) -> FormatSpec:
        try:
            return self._specs[identifier.lower()]
        except KeyError:
            raise UnsupportedFormatError(f"Unsupported format: {identifier}") from None

    def category_of(self, identifier: str) -> MediaCategory:
        return self.get(identifier).category

    def by_category(self, category: MediaCategory) -> List[FormatSpec]:
        return [spec for spec in self._specs.values() if spec.category is category]

    def identifiers(self) -> List[str]:
        return list(self._specs)

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and identifier.lower() in self._specs

    def __iter__(self) -> Iterator[FormatSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)
