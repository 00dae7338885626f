"""Registry of active source parsers."""

from __future__ import annotations

from collections.abc import Iterable

from ..models import SourceType
from .protocol import SourceParser

ALL_SOURCES = "all"


class ParserRegistry:
    """Holds one parser per source type."""

    def __init__(self, parsers: Iterable[SourceParser] = ()) -> None:
        self._parsers: dict[SourceType, SourceParser] = {}
        for parser in parsers:
            self.register(parser)

    def register(self, parser: SourceParser) -> None:
        """Register a parser, replacing any parser with the same source type."""
        self._parsers[parser.source_type] = parser

    def get(self, source_type: SourceType) -> SourceParser | None:
        return self._parsers.get(source_type)

    def get_all(self) -> list[SourceParser]:
        return list(self._parsers.values())

    def get_by_types(self, types: Iterable[SourceType | str]) -> list[SourceParser]:
        """Parsers for the given source types, or all of them for ``"all"``.

        Unknown and unregistered types are ignored.
        """
        wanted = list(types)
        if ALL_SOURCES in wanted:
            return self.get_all()
        parsers = []
        for name in wanted:
            try:
                source_type = SourceType(name)
            except ValueError:
                continue
            parser = self._parsers.get(source_type)
            if parser is not None and parser not in parsers:
                parsers.append(parser)
        return parsers

    def has(self, source_type: SourceType) -> bool:
        return source_type in self._parsers

    def types(self) -> list[SourceType]:
        return list(self._parsers)
