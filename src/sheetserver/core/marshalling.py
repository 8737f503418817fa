"""
JSON marshalling with a named type registry.

The registry maps wire type names (``"SpreadsheetDelta"``) to model
classes.  It is filled once by :func:`register_json_types`, an explicit
idempotent initializer called by the app factory (and by
:class:`JsonMarshaller` on first use), never by import side effects.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel

from sheetserver.core.model import (
    DateTimeSymbols,
    DecimalNumberSymbols,
    Delta,
    DocumentModel,
    ExpressionReferenceSimilarities,
    LabelMapping,
    LocaleInfo,
    Plugin,
    ProviderInfo,
    SpreadsheetMetadata,
)

M = TypeVar("M", bound=BaseModel)

# Hook run on raw JSON before it is validated into the target type.
PreProcessor = Callable[[Any, type], Any]

_lock = threading.Lock()
_initialized = False
_types_by_name: dict[str, type[BaseModel]] = {}
_names_by_type: dict[type[BaseModel], str] = {}


def register_json_type(name: str, model: type[BaseModel]) -> None:
    with _lock:
        existing = _types_by_name.get(name)
        if existing is not None and existing is not model:
            raise ValueError(f"JSON type {name!r} already registered to {existing.__name__}")
        _types_by_name[name] = model
        _names_by_type[model] = name


def register_json_types() -> None:
    """Register every document type the server exchanges.  Safe to call repeatedly."""
    global _initialized
    if _initialized:
        return
    for name, model in (
        ("SpreadsheetDelta", Delta),
        ("SpreadsheetLabelMapping", LabelMapping),
        ("SpreadsheetExpressionReferenceSimilarities", ExpressionReferenceSimilarities),
        ("SpreadsheetMetadata", SpreadsheetMetadata),
        ("ProviderInfo", ProviderInfo),
        ("LocaleInfo", LocaleInfo),
        ("DateTimeSymbols", DateTimeSymbols),
        ("DecimalNumberSymbols", DecimalNumberSymbols),
        ("Plugin", Plugin),
    ):
        register_json_type(name, model)
    _initialized = True


def type_for_name(name: str) -> type[BaseModel]:
    register_json_types()
    try:
        return _types_by_name[name]
    except KeyError:
        raise ValueError(f"Unknown JSON type {name!r}") from None


def name_for_type(model: type) -> str | None:
    register_json_types()
    return _names_by_type.get(model)


class JsonMarshaller:
    """Converts between registered models and JSON-compatible values."""

    def __init__(self) -> None:
        register_json_types()

    def marshall(self, value: Any) -> Any:
        if isinstance(value, DocumentModel):
            return value.to_json()
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json", by_alias=True)
        if isinstance(value, (list, tuple)):
            return [self.marshall(v) for v in value]
        return value

    def unmarshall(self, json: Any, model: type[M]) -> M:
        return model.model_validate(json)

    def unmarshall_list(self, json: Any, model: type[M]) -> list[M]:
        if not isinstance(json, list):
            raise ValueError(f"Expected a JSON array of {model.__name__}")
        return [model.model_validate(item) for item in json]

    def type_name(self, value: Any) -> str | None:
        return name_for_type(type(value))

