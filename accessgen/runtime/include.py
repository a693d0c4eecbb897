# File: accessgen/runtime/include.py
"""
Include specs: which related records an include-fill call should load.

Text form::

    orders{customers, order_items{products}}

A name may be followed by a braced, comma-separated list of nested specs.
Empty braces mean the same as no braces.  Whitespace is ignored.

Specs built by ``IncludeSpec.closure`` can be cyclic object graphs (the include
spec for ``orders`` contains ``customers``, which contains ``orders`` again);
everything in this module copes with that.
"""

from __future__ import annotations

import logging
import re
from typing import (
    Any,
    Dict,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from accessgen.runtime.errors import IncludeSpecError

logger: logging.Logger = logging.getLogger("accessgen.runtime.include")

_TOKEN_RE: re.Pattern[str] = re.compile(r"\s*(?:([A-Za-z_][A-Za-z0-9_]*)|([{},]))")

IncludeGraph = Mapping[str, Sequence[str]]


class IncludeSpec:
    """A table name and the nested specs of the related tables to load."""

    __slots__ = ("table_name", "includes")

    def __init__(
        self,
        table_name: str,
        includes: Optional[Dict[str, "IncludeSpec"]] = None,
    ) -> None:
        self.table_name: str = table_name
        self.includes: Optional[Dict[str, IncludeSpec]] = includes or None

    # -- Construction ---------------------------------------------------------

    @classmethod
    def parse(cls, source: str) -> "IncludeSpec":
        tokens: List[str] = _tokenize(source)
        spec, pos = _parse_spec(tokens, 0)
        if pos != len(tokens):
            raise IncludeSpecError(
                f"unexpected '{tokens[pos]}' after include spec in {source!r}"
            )
        return spec

    @classmethod
    def from_mapping(cls, table_name: str, includes: Mapping[str, Any]) -> "IncludeSpec":
        """Build a spec from nested dicts: ``{"customers": {}}``."""
        nested: Dict[str, IncludeSpec] = {}
        for name, sub in includes.items():
            nested[name] = cls.from_mapping(name, sub or {})
        return cls(table_name, nested)

    @classmethod
    def closure(cls, table_name: str, graph: IncludeGraph) -> "IncludeSpec":
        """
        Full include closure of *table_name* over *graph*.

        One spec object per table is shared by every path that reaches it,
        so the result is finite even when the graph has cycles.
        """
        arena: Dict[str, IncludeSpec] = {}

        def ensure(name: str) -> IncludeSpec:
            spec: Optional[IncludeSpec] = arena.get(name)
            if spec is not None:
                return spec
            spec = cls(name)
            arena[name] = spec
            nested: Dict[str, IncludeSpec] = {}
            for related in graph.get(name, ()):
                if related != name:
                    nested[related] = ensure(related)
            spec.includes = nested or None
            return spec

        return ensure(table_name)

    # -- Queries --------------------------------------------------------------

    def get(self, table_name: str) -> Optional["IncludeSpec"]:
        if self.includes is None:
            return None
        return self.includes.get(table_name)

    def check(self, table_name: str, graph: IncludeGraph) -> None:
        """
        Raise ``IncludeSpecError`` unless this spec fits *table_name*.

        The root must name *table_name*; at every level each key must be a
        table related to the table at that level.
        """
        if self.table_name != table_name:
            raise IncludeSpecError(
                f"expected includes for '{table_name}', got '{self.table_name}'"
            )
        seen: Set[int] = set()
        stack: List[IncludeSpec] = [self]
        while stack:
            spec: IncludeSpec = stack.pop()
            if id(spec) in seen:
                continue
            seen.add(id(spec))
            allowed: Sequence[str] = graph.get(spec.table_name, ())
            for name, sub in (spec.includes or {}).items():
                if name not in allowed:
                    raise IncludeSpecError(
                        f"'{spec.table_name}' has no relationship to '{name}'"
                    )
                if sub.table_name != name:
                    raise IncludeSpecError(
                        f"include key '{name}' holds a spec for '{sub.table_name}'"
                    )
                stack.append(sub)

    # -- Rendering ------------------------------------------------------------

    def __str__(self) -> str:
        visited: Set[int] = set()

        def render(spec: IncludeSpec) -> str:
            visited.add(id(spec))
            parts: List[str] = [
                render(spec.includes[name])
                for name in sorted(spec.includes or {})
                if id(spec.includes[name]) not in visited
            ]
            if not parts:
                return spec.table_name
            return f"{spec.table_name}{{{', '.join(parts)}}}"

        return render(self)

    def __repr__(self) -> str:
        return f"IncludeSpec({str(self)!r})"


def must_parse(source: str) -> IncludeSpec:
    return IncludeSpec.parse(source)


def distinct_records(records: Iterable[Any]) -> List[Any]:
    """Drop repeated record objects (by identity), keeping first-seen order."""
    seen: Set[int] = set()
    unique: List[Any] = []
    for record in records:
        if id(record) not in seen:
            seen.add(id(record))
            unique.append(record)
    return unique


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _tokenize(source: str) -> List[str]:
    tokens: List[str] = []
    pos: int = 0
    stripped_end: int = len(source.rstrip())
    while pos < stripped_end:
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise IncludeSpecError(
                f"unexpected character {source[pos]!r} at offset {pos} in {source!r}"
            )
        tokens.append(match.group(1) or match.group(2))
        pos = match.end()
    if not tokens:
        raise IncludeSpecError("empty include spec")
    return tokens


def _parse_spec(tokens: List[str], pos: int) -> Tuple[IncludeSpec, int]:
    if pos >= len(tokens) or tokens[pos] in "{},":
        found: str = tokens[pos] if pos < len(tokens) else "end of input"
        raise IncludeSpecError(f"expected a table name, found '{found}'")
    name: str = tokens[pos]
    pos += 1
    if pos >= len(tokens) or tokens[pos] != "{":
        return IncludeSpec(name), pos

    pos += 1
    nested: Dict[str, IncludeSpec] = {}
    if pos < len(tokens) and tokens[pos] == "}":
        return IncludeSpec(name), pos + 1
    while True:
        sub, pos = _parse_spec(tokens, pos)
        if sub.table_name in nested:
            raise IncludeSpecError(
                f"'{sub.table_name}' included twice under '{name}'"
            )
        nested[sub.table_name] = sub
        if pos >= len(tokens):
            raise IncludeSpecError(f"unclosed '{{' after '{name}'")
        if tokens[pos] == "}":
            return IncludeSpec(name, nested), pos + 1
        if tokens[pos] != ",":
            raise IncludeSpecError(f"expected ',' or '}}', found '{tokens[pos]}'")
        pos += 1


# ---------------------------------------------------------------------------
# Per-call record cache
# ---------------------------------------------------------------------------


class LoadedRecordCache:
    """
    Records loaded during one include-fill call, keyed by table then primary key.

    Also remembers which records have already been expanded under which spec
    node, so a record reached twice (or a cyclic spec) is only expanded once.
    """

    __slots__ = ("_tables", "_expanded")

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[Hashable, Any]] = {}
        self._expanded: Set[Tuple[str, int, Hashable]] = set()

    def table(self, table_name: str) -> Dict[Hashable, Any]:
        return self._tables.setdefault(table_name, {})

    def admit(
        self,
        table_name: str,
        spec: IncludeSpec,
        records: Sequence[Any],
        keys: Sequence[Hashable],
    ) -> List[Any]:
        """
        Register *records* and return the ones not yet expanded under *spec*.

        *keys* are the records' primary keys, in the same order.
        """
        loaded: Dict[Hashable, Any] = self.table(table_name)
        fresh: List[Any] = []
        for record, key in zip(records, keys):
            loaded.setdefault(key, record)
            marker: Tuple[str, int, Hashable] = (table_name, id(spec), key)
            if marker in self._expanded:
                continue
            self._expanded.add(marker)
            fresh.append(record)
        return fresh

    def __contains__(self, table_name: object) -> bool:
        return table_name in self._tables

    def __repr__(self) -> str:
        counts: str = ", ".join(f"{t}={len(r)}" for t, r in self._tables.items())
        return f"<LoadedRecordCache {counts}>"


__all__: List[str] = [
    "IncludeGraph",
    "IncludeSpec",
    "LoadedRecordCache",
    "must_parse",
    "distinct_records",
]
