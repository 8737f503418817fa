"""
Sort plans: which column or row values order a cell range, and how.

A plan is written ``<key>=<comparator>[ UP|DOWN][,<comparator>...]`` with
keys separated by ``;``, for example ``A=text;C=number DOWN``.  Column keys
(``A``) reorder the rows of the range and row keys (``3``) reorder its
columns; one plan never mixes both.  Later comparators of a key, and later
keys, only break ties.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from sheetserver.core.errors import InvalidSelectionError
from sheetserver.core.references import parse_column, parse_row

UP = "UP"
DOWN = "DOWN"

# (rank, value): values a comparator cannot read rank after those it can.
SortKey = tuple[int, Any]


@dataclass(frozen=True)
class SortComparator:
    name: str
    descending: bool = False

    def __str__(self) -> str:
        return f"{self.name} {DOWN if self.descending else UP}"


@dataclass(frozen=True)
class SortColumnOrRow:
    """Column (``axis == "column"``) or row whose values order the range."""

    axis: str
    index: int
    comparators: tuple[SortComparator, ...]


def parse_sort_plan(text: str, comparator_names: Collection[str]) -> list[SortColumnOrRow]:
    """Parse *text*, accepting only comparators named in *comparator_names*."""
    plan = []
    for part in text.split(";"):
        if not part.strip():
            continue
        key, sep, comparators = part.partition("=")
        if not sep:
            raise InvalidSelectionError(f"Missing '=' in sort comparators {part!r}")
        axis, index = _parse_key(key)
        plan.append(
            SortColumnOrRow(
                axis=axis,
                index=index,
                comparators=tuple(_parse_comparator(c, comparator_names) for c in comparators.split(",")),
            )
        )

    if not plan:
        raise InvalidSelectionError("Missing sort comparators")
    if len({key.axis for key in plan}) > 1:
        raise InvalidSelectionError("Sort comparators mix columns and rows")
    return plan


def _parse_key(text: str) -> tuple[str, int]:
    try:
        return "column", parse_column(text).index
    except InvalidSelectionError:
        return "row", parse_row(text).index


def _parse_comparator(text: str, comparator_names: Collection[str]) -> SortComparator:
    name, _, direction = text.strip().partition(" ")
    direction = direction.strip().upper() or UP
    if direction not in (UP, DOWN):
        raise InvalidSelectionError(f"Invalid sort direction {direction!r}")
    if name not in comparator_names:
        raise InvalidSelectionError(f"Unknown comparator {name!r}")
    return SortComparator(name=name, descending=direction == DOWN)


def sorted_slices(
    slices: Iterable[int],
    plan: Sequence[SortColumnOrRow],
    value_of: Callable[[int, int], Any],
) -> list[int]:
    """Order *slices* (row or column indices) by *plan*.

    ``value_of(slice, key_index)`` answers the value a key compares, or
    ``None`` when the cell is empty or in error.  Missing values go last.
    """
    ordered = list(slices)
    steps = [(key.index, comparator) for key in plan for comparator in key.comparators]
    # Stable passes from the least significant comparator up.
    for index, comparator in reversed(steps):
        sort_key = COMPARATORS[comparator.name]
        keyed = [(s, value_of(s, index)) for s in ordered]
        present = [(s, sort_key(v)) for s, v in keyed if v is not None and v != ""]
        present.sort(key=lambda item: item[1], reverse=comparator.descending)
        ordered = [s for s, _ in present] + [s for s, v in keyed if v is None or v == ""]
    return ordered


# ── Comparators ──────────────────────────────────────────────────────────


def _fallback(value: Any) -> SortKey:
    return (1, str(value))


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
        except ValueError:
            return None
    return None


def _as_time(value: Any) -> time | None:
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip()).replace(tzinfo=None)
        except ValueError:
            pass
    moment = _as_datetime(value)
    return None if moment is None else moment.time()


def _datetime_part(part: Callable[[datetime], Any]) -> Callable[[Any], SortKey]:
    def key(value: Any) -> SortKey:
        moment = _as_datetime(value)
        return _fallback(value) if moment is None else (0, part(moment))

    return key


def _number(value: Any) -> SortKey:
    if isinstance(value, bool):
        return _fallback(value)
    try:
        return (0, float(value))
    except (TypeError, ValueError):
        return _fallback(value)


def _time(value: Any) -> SortKey:
    moment = _as_time(value)
    return _fallback(value) if moment is None else (0, moment)


COMPARATORS: dict[str, Callable[[Any], SortKey]] = {
    "date": _datetime_part(lambda moment: moment.date()),
    "date-time": _datetime_part(lambda moment: moment),
    "day-of-month": _datetime_part(lambda moment: moment.day),
    "month-of-year": _datetime_part(lambda moment: moment.month),
    "number": _number,
    "text": lambda value: (0, str(value)),
    "text-case-insensitive": lambda value: (0, str(value).casefold()),
    "time": _time,
    "year": _datetime_part(lambda moment: moment.year),
}
