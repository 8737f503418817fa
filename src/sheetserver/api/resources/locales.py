"""
Locale resources.

``/api/locale/[*|<tag>]`` lists supported locales;
``/api/locale/*/localeStartsWith/<prefix>`` filters them.  The
``date-time-symbols`` and ``decimal-number-symbols`` resources follow the same
shape and return the symbols of each locale.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sheetserver.core.errors import InvalidSelectionError
from sheetserver.core.locales import LocaleTable, normalize_locale_tag
from sheetserver.hateos.mapping import SELF, ResourceHandler, ResourceMapping
from sheetserver.hateos.selection import selection_parser

LOCALE_STARTS_WITH = "localeStartsWith"


def _prefix(path: tuple[str, ...]) -> str:
    if not path or not path[0]:
        raise InvalidSelectionError(f"Missing locale prefix after {LOCALE_STARTS_WITH}")
    return path[0]


class LocaleHandler(ResourceHandler):
    """Answers with ``read(locales, tag)`` for each selected locale."""

    def __init__(self, read: Callable[[LocaleTable, str], Any]):
        self._read = read

    def handle_one(self, id, resource, parameters, path, context):
        return self._read(context.locales, id)

    def handle_all(self, resource, parameters, path, context):
        return [self._read(context.locales, info.locale_tag) for info in context.locales.all()]


class LocaleStartsWithHandler(LocaleHandler):
    def handle_one(self, id, resource, parameters, path, context):
        return self.handle_all(resource, parameters, path, context)

    def handle_all(self, resource, parameters, path, context):
        return [
            self._read(context.locales, info.locale_tag)
            for info in context.locales.starts_with(_prefix(path))
        ]


def _mapping(name: str, collection_type: str, read: Callable[[LocaleTable, str], Any]) -> ResourceMapping:
    return (
        ResourceMapping(
            name=name,
            selection_parser=selection_parser(normalize_locale_tag),
            resource_type=None,
            collection_type=collection_type,
        )
        .set_handler(SELF, "GET", LocaleHandler(read))
        .set_handler(LOCALE_STARTS_WITH, "GET", LocaleStartsWithHandler(read))
    )


def locale_mappings() -> list[ResourceMapping]:
    return [
        _mapping("locale", "LocaleInfoSet", LocaleTable.load),
        _mapping("date-time-symbols", "DateTimeSymbolsList", LocaleTable.date_time_symbols),
        _mapping("decimal-number-symbols", "DecimalNumberSymbolsList", LocaleTable.decimal_number_symbols),
    ]
