"""
Version 3 source maps, decoded with the `sourcemap` package.

Generated lines and original lines are 1-based, columns are 0-based, following the
source map format itself.
"""

import json
from collections import defaultdict
from typing import Any, NamedTuple

import sourcemap
from sourcemap.exceptions import SourceMapDecodeError
from sourcemap.objects import SourceMapIndex, Token

from cpuscope.errors.sourcemap import SourceMapParseError


class Mapping(NamedTuple):
    generated_line: int
    generated_column: int
    source: str | None = None
    original_line: int | None = None
    original_column: int | None = None
    name: str | None = None

    @staticmethod
    def from_token(token: Token) -> "Mapping":
        if token.src is None:
            return Mapping(token.dst_line + 1, token.dst_col)
        return Mapping(
            generated_line=token.dst_line + 1,
            generated_column=token.dst_col,
            source=token.src,
            original_line=token.src_line + 1,
            original_column=token.src_col,
            name=token.name,
        )


class SourceMap:
    def __init__(self, index: SourceMapIndex, sources: list[str | None], names: list[str], locator: str = "") -> None:
        self.index: SourceMapIndex = index
        self.sources: list[str | None] = sources
        self.names: list[str] = names
        self.locator: str = locator
        self._named_by_line: defaultdict[int, list[Mapping]] = defaultdict(list)
        for token in index:
            if token.name is not None and token.src is not None:
                self._named_by_line[token.dst_line + 1].append(Mapping.from_token(token))

    @staticmethod
    def from_json(data: str | bytes | dict[str, Any], locator: str = "") -> "SourceMap":
        """Parse a version 3 source map. It must hold a `sources` list and a `mappings` string."""
        try:
            raw = data if isinstance(data, dict) else json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SourceMapParseError(locator, f"invalid JSON ({e})") from e
        if not isinstance(raw, dict):
            raise SourceMapParseError(locator, "not a JSON object")

        sources = raw.get("sources")
        mappings = raw.get("mappings")
        if not isinstance(sources, list) or not isinstance(mappings, str):
            raise SourceMapParseError(locator, "missing `sources` list or `mappings` string")
        if not all(source is None or isinstance(source, str) for source in sources):
            raise SourceMapParseError(locator, "`sources` must only hold strings or null")
        source_root = raw.get("sourceRoot") or ""
        if not isinstance(source_root, str):
            raise SourceMapParseError(locator, "`sourceRoot` must be a string")

        sources = [SourceMap.join_source_root(source_root, source) for source in sources]
        names = [str(name) for name in raw.get("names") or []]
        # sourceRoot is already applied: the decoder would join it as a filesystem path
        normalized = {"version": 3, "sources": sources, "names": names, "mappings": mappings}
        try:
            index = sourcemap.loads(json.dumps(normalized))
        except SourceMapDecodeError as e:
            raise SourceMapParseError(locator, str(e)) from e
        except (LookupError, TypeError, ValueError) as e:
            # segments with too few fields or invalid characters
            raise SourceMapParseError(locator, f"invalid mappings ({e})") from e
        return SourceMap(index=index, sources=sources, names=names, locator=locator)

    @staticmethod
    def join_source_root(source_root: str, source: str | None) -> str | None:
        if source is None or source_root == "" or "://" in source or source.startswith("/"):
            return source
        return f"{source_root.rstrip('/')}/{source}"

    def __len__(self) -> int:
        return len(self.index)

    def original_position_for(self, line: int, column: int) -> Mapping | None:
        """Closest mapping at or before (`line`, `column`) on the same generated line."""
        if line < 1 or column < 0:
            return None
        try:
            token = self.index.lookup(line - 1, column)
        except IndexError:
            return None
        return Mapping.from_token(token)

    def find_nearest_named(self, line: int, column: int, line_radius: int, column_radius: int) -> Mapping | None:
        """
        Nearest mapping carrying a name within the given radius around a generated position.

        Positions before the target win over positions after it, then the closest line,
        then the closest column.
        """
        best: Mapping | None = None
        best_key: tuple[bool, int, int] | None = None
        for candidate_line in range(max(line - line_radius, 1), line + line_radius + 1):
            for mapping in self._named_by_line.get(candidate_line, []):
                column_distance = abs(mapping.generated_column - column)
                if column_distance > column_radius:
                    continue
                key = (
                    (mapping.generated_line, mapping.generated_column) > (line, column),
                    abs(mapping.generated_line - line),
                    column_distance,
                )
                if best_key is None or key < best_key:
                    best, best_key = mapping, key
        return best
