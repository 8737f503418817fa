"""
JSON document models.

All models serialize with camelCase keys (``deletedCells``,
``spreadsheetName``) and omit unset/default values, which keeps delta
documents small: a delta carrying one cell dumps as
``{"cells": {"B2": {...}}}``.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sheetserver.core.ids import SpreadsheetIdField


class DocumentModel(BaseModel):
    """Base for every JSON document exchanged with clients."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_defaults=True)


# ── Cells ────────────────────────────────────────────────────────────────


class Formula(DocumentModel):
    """Formula text plus its last evaluated value or error code."""

    text: str = ""
    value: Any = None
    error: str | None = None

    @property
    def is_expression(self) -> bool:
        return self.text.startswith("=")

    def cleared(self) -> Formula:
        return Formula(text=self.text)


class Cell(DocumentModel):
    formula: Formula = Field(default_factory=Formula)
    style: dict[str, Any] = Field(default_factory=dict)
    formatted_value: str | None = None


class Column(DocumentModel):
    hidden: bool = False


class Row(DocumentModel):
    hidden: bool = False


class LabelMapping(DocumentModel):
    """Label name bound to a cell, a range or another label."""

    label: str
    reference: str


class Delta(DocumentModel):
    """Partial spreadsheet document, used for requests and responses.

    ``cells`` keys are cell references (or label names before label
    resolution has run on an incoming patch).
    """

    cells: dict[str, Cell] = Field(default_factory=dict)
    columns: dict[str, Column] = Field(default_factory=dict)
    rows: dict[str, Row] = Field(default_factory=dict)
    labels: list[LabelMapping] = Field(default_factory=list)
    deleted_cells: list[str] = Field(default_factory=list)
    deleted_columns: list[str] = Field(default_factory=list)
    deleted_rows: list[str] = Field(default_factory=list)
    deleted_labels: list[str] = Field(default_factory=list)
    column_widths: dict[str, float] = Field(default_factory=dict)
    row_heights: dict[str, float] = Field(default_factory=dict)
    column_count: int | None = None
    row_count: int | None = None
    matched_cells: list[str] = Field(default_factory=list)


class ExpressionReferenceSimilarities(DocumentModel):
    """What a partly typed formula reference could mean.

    ``cell_reference`` is set when the text is a cell, ``label_name`` when
    it could name a new label, and ``labels`` lists existing labels it
    starts.
    """

    cell_reference: str | None = None
    label_name: str | None = None
    labels: list[LabelMapping] = Field(default_factory=list)


# ── Metadata ─────────────────────────────────────────────────────────────


class AuditInfo(DocumentModel):
    created_by: str | None = None
    created_timestamp: datetime
    modified_by: str | None = None
    modified_timestamp: datetime


class SpreadsheetMetadata(DocumentModel):
    """Per-spreadsheet settings.

    ``locale`` plus the provider selector lists drive the provider derived for
    a tenant; a ``None`` selector list means "everything the server offers".
    """

    spreadsheet_id: SpreadsheetIdField | None = None
    spreadsheet_name: str | None = None
    locale: str | None = None
    audit_info: AuditInfo | None = None
    comparators: list[str] | None = None
    converters: list[str] | None = None
    exporters: list[str] | None = None
    formatters: list[str] | None = None
    form_handlers: list[str] | None = None
    functions: list[str] | None = None
    importers: list[str] | None = None
    parsers: list[str] | None = None
    validators: list[str] | None = None
    find_highlighting: bool | None = None
    find_query: str | None = None
    default_column_width: float | None = None
    default_row_height: float | None = None

    @classmethod
    def property_names(cls) -> tuple[str, ...]:
        """JSON names of every metadata property, e.g. ``"spreadsheetName"``."""
        return tuple(field.alias or name for name, field in cls.model_fields.items())


# ── Providers, locales and plugins ───────────────────────────────────────


class ProviderInfo(DocumentModel):
    url: str
    name: str


class LocaleInfo(DocumentModel):
    locale_tag: str
    text: str


class DateTimeSymbols(DocumentModel):
    locale_tag: str
    ampms: list[str]
    month_names: list[str]
    month_name_abbreviations: list[str]
    weekday_names: list[str]
    weekday_name_abbreviations: list[str]


class DecimalNumberSymbols(DocumentModel):
    locale_tag: str
    negative_sign: str = "-"
    positive_sign: str = "+"
    zero_digit: str = "0"
    currency_symbol: str
    decimal_separator: str
    exponent_symbol: str = "E"
    group_separator: str
    infinity_symbol: str = "∞"
    monetary_decimal_separator: str
    nan_symbol: str = "NaN"
    percent_symbol: str = "%"
    permill_symbol: str = "‰"

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Plugin(DocumentModel):
    name: str
    filename: str
    user: str | None = None
    timestamp: datetime | None = None
