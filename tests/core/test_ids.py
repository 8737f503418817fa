"""Tests for spreadsheet ids."""

import pytest
from pydantic import BaseModel

from sheetserver.core.errors import InvalidSpreadsheetIdError
from sheetserver.core.ids import SpreadsheetId, SpreadsheetIdField


class TestParse:
    @pytest.mark.parametrize("text,value", [("0", 0), ("1", 1), ("7b", 123), ("7B", 123), ("ffffffffffffffff", 2**64 - 1)])
    def test_valid(self, text, value):
        assert SpreadsheetId.parse(text).value == value

    @pytest.mark.parametrize("text", ["", "xyz", "-1", "1.5", " 1", "12345678901234567"])
    def test_invalid(self, text):
        with pytest.raises(InvalidSpreadsheetIdError) as exc:
            SpreadsheetId.parse(text)
        assert "Invalid SpreadsheetId" in exc.value.message

    def test_deterministic(self):
        assert SpreadsheetId.parse("abc") == SpreadsheetId.parse("ABC")


class TestSpreadsheetId:
    def test_str_is_lower_case_hex(self):
        assert str(SpreadsheetId(255)) == "ff"

    def test_ordering(self):
        assert SpreadsheetId(1) < SpreadsheetId(2)

    def test_negative_rejected(self):
        with pytest.raises(InvalidSpreadsheetIdError):
            SpreadsheetId(-1)

    def test_hashable(self):
        assert {SpreadsheetId(1): "a"}[SpreadsheetId.parse("1")] == "a"


class TestPydanticField:
    class Doc(BaseModel):
        id: SpreadsheetIdField

    def test_accepts_text_and_int(self):
        assert self.Doc(id="ff").id == SpreadsheetId(255)
        assert self.Doc(id=255).id == SpreadsheetId(255)

    def test_dumps_as_hex(self):
        assert self.Doc(id=255).model_dump(mode="json") == {"id": "ff"}
