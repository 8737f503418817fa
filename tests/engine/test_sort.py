"""Tests for sort plan parsing and ordering."""

import pytest

from sheetserver.core.errors import InvalidSelectionError
from sheetserver.core.providers import BUILTIN_PROVIDERS
from sheetserver.engine.sort import COMPARATORS, parse_sort_plan, sorted_slices

NAMES = BUILTIN_PROVIDERS["comparator"]


class TestParseSortPlan:
    def test_column_keys(self):
        plan = parse_sort_plan("A=text;C=number DOWN", NAMES)
        assert [(key.axis, key.index) for key in plan] == [("column", 1), ("column", 3)]
        assert not plan[0].comparators[0].descending
        assert plan[1].comparators[0].descending

    def test_row_key_with_tie_breaker(self):
        (key,) = parse_sort_plan("2=text-case-insensitive UP,number", NAMES)
        assert (key.axis, key.index) == ("row", 2)
        assert [c.name for c in key.comparators] == ["text-case-insensitive", "number"]

    @pytest.mark.parametrize(
        "text",
        ["", "A", "A=nope", "A=text;2=text", "A=text SIDEWAYS", "1A=text"],
    )
    def test_invalid(self, text):
        with pytest.raises(InvalidSelectionError):
            parse_sort_plan(text, NAMES)

    def test_only_offered_comparators(self):
        with pytest.raises(InvalidSelectionError):
            parse_sort_plan("A=number", ("text",))


class TestSortedSlices:
    def _order(self, plan_text, values):
        plan = parse_sort_plan(plan_text, NAMES)
        return sorted_slices(sorted({row for row, _ in values}), plan, lambda row, column: values.get((row, column)))

    def test_ascending_missing_last(self):
        values = {(1, 1): "b", (2, 1): None, (3, 1): "a"}
        assert self._order("A=text", values) == [3, 1, 2]

    def test_descending_missing_last(self):
        values = {(1, 1): 2, (2, 1): None, (3, 1): 10}
        assert self._order("A=number DOWN", values) == [3, 1, 2]

    def test_later_keys_break_ties(self):
        values = {(1, 1): "x", (1, 2): 3, (2, 1): "x", (2, 2): 1, (3, 1): "a", (3, 2): 9}
        assert self._order("A=text;B=number", values) == [3, 2, 1]

    def test_equal_values_keep_their_order(self):
        values = {(1, 1): "Same", (2, 1): "same", (3, 1): "SAME"}
        assert self._order("A=text-case-insensitive", values) == [1, 2, 3]


class TestComparators:
    def test_numbers_before_text(self):
        assert sorted(["x", 10, 9.5], key=COMPARATORS["number"]) == [9.5, 10, "x"]

    def test_day_of_month(self):
        days = ["2024-03-05", "2023-12-01", "2022-01-31"]
        assert sorted(days, key=COMPARATORS["day-of-month"]) == ["2023-12-01", "2024-03-05", "2022-01-31"]

    def test_time(self):
        assert sorted(["13:00", "09:30:15"], key=COMPARATORS["time"]) == ["09:30:15", "13:00"]
