"""
Selections: the parsed form of the id segment of a resource path.

=========  ==============  ===================================
kind       path segment    example
=========  ==============  ===================================
NONE       (absent/empty)  ``POST /api/spreadsheet``
ONE        id              ``GET /api/plugin/json``
MANY       id,id,...       ``GET /api/formatter/date,number``
ALL        ``*``           ``GET /api/locale/*``
RANGE      id:id           ``DELETE .../column/A:C``
=========  ==============  ===================================
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sheetserver.core.errors import InvalidSelectionError

WILDCARD = "*"


class SelectionKind(str, Enum):
    NONE = "none"
    ONE = "one"
    MANY = "many"
    ALL = "all"
    RANGE = "range"


@dataclass(frozen=True)
class Selection:
    kind: SelectionKind
    value: Any = None

    @classmethod
    def none(cls) -> Selection:
        return cls(SelectionKind.NONE)

    @classmethod
    def one(cls, value: Any) -> Selection:
        return cls(SelectionKind.ONE, value)

    @classmethod
    def many(cls, values: tuple[Any, ...]) -> Selection:
        return cls(SelectionKind.MANY, tuple(values))

    @classmethod
    def all(cls) -> Selection:
        return cls(SelectionKind.ALL)

    @classmethod
    def range(cls, value: Any) -> Selection:
        return cls(SelectionKind.RANGE, value)


# (selection text, handler context) → Selection
SelectionParser = Callable[[str, Any], Selection]


def selection_parser(
    one: Callable[[str], Any],
    *,
    range: Callable[[str], Any] | None = None,
    many: bool = False,
    wildcard: bool = True,
) -> SelectionParser:
    """Build a parser from an id parser plus the optional kinds a resource supports."""

    def parse(text: str, context: Any = None) -> Selection:
        if text == "":
            return Selection.none()
        if text == WILDCARD:
            if not wildcard:
                raise InvalidSelectionError(f"Invalid selection {text!r}")
            return Selection.all()
        if range is not None and ":" in text:
            return Selection.range(range(text))
        if many and "," in text:
            return Selection.many(tuple(one(part) for part in text.split(",") if part))
        return Selection.one(one(text))

    return parse


def text_id(text: str) -> str:
    """Id parser for resources addressed by a plain name."""
    if not text.strip() or "/" in text:
        raise InvalidSelectionError(f"Invalid name {text!r}")
    return text
