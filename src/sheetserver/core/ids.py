"""
Spreadsheet identifiers.

A :class:`SpreadsheetId` is a non-negative integer written in the URL as a
lower-case hexadecimal token without leading zeros (``"7b"``).  Parsing is
case-insensitive, pure and deterministic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import PlainSerializer, PlainValidator

from sheetserver.core.errors import InvalidSpreadsheetIdError

_HEX = re.compile(r"^[0-9A-Fa-f]{1,16}$")


@dataclass(frozen=True, order=True)
class SpreadsheetId:
    """Opaque, totally ordered spreadsheet identifier."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise InvalidSpreadsheetIdError(f"Invalid SpreadsheetId {self.value}")

    @classmethod
    def parse(cls, text: str) -> SpreadsheetId:
        """Parse a hex token, raising :class:`InvalidSpreadsheetIdError` on failure."""
        if not isinstance(text, str) or not _HEX.match(text):
            raise InvalidSpreadsheetIdError(f"Invalid SpreadsheetId {text!r}")
        return cls(int(text, 16))

    def __str__(self) -> str:
        return format(self.value, "x")


def _validate(value: Any) -> SpreadsheetId:
    if isinstance(value, SpreadsheetId):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return SpreadsheetId(value)
    return SpreadsheetId.parse(value)


# Pydantic field type: accepts "7b", 123 or a SpreadsheetId; dumps as "7b".
SpreadsheetIdField = Annotated[
    SpreadsheetId,
    PlainValidator(_validate),
    PlainSerializer(str, return_type=str),
]
