"""
Spreadsheet providers.

A provider answers "which comparators, converters, formatters, ... can this
spreadsheet use".  The server-wide provider offers everything built in; a
tenant's provider is narrowed by the selector lists in its metadata and
bound to its locale.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from sheetserver.core.errors import InvalidMetadataError
from sheetserver.core.locales import LocaleTable
from sheetserver.core.model import ProviderInfo, SpreadsheetMetadata

# Resource name → metadata field holding its selector list.
PROVIDER_KINDS: Mapping[str, str] = MappingProxyType(
    {
        "comparator": "comparators",
        "converter": "converters",
        "exporter": "exporters",
        "formatter": "formatters",
        "form-handler": "form_handlers",
        "function": "functions",
        "importer": "importers",
        "parser": "parsers",
        "validator": "validators",
    }
)

BUILTIN_PROVIDERS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "comparator": (
            "date", "date-time", "day-of-month", "month-of-year", "number",
            "text", "text-case-insensitive", "time", "year",
        ),
        "converter": ("basic", "collection", "general", "number-to-text", "text-to-number"),
        "exporter": ("empty", "json"),
        "formatter": ("automatic", "date", "date-time", "general", "number", "text", "time"),
        "form-handler": ("basic",),
        "function": ("average", "abs", "concat", "count", "if", "max", "min", "round", "sum"),
        "importer": ("empty", "json"),
        "parser": ("date", "date-time", "general", "number", "time"),
        "validator": ("collection", "expression", "non-null"),
    }
)


@dataclass(frozen=True)
class SpreadsheetProvider:
    """Provider names available per kind, bound to one locale."""

    locale: str
    server_url: str
    selections: Mapping[str, tuple[str, ...]]

    def names(self, kind: str) -> tuple[str, ...]:
        try:
            return self.selections[kind]
        except KeyError:
            raise ValueError(f"Unknown provider kind {kind!r}") from None

    def infos(self, kind: str) -> list[ProviderInfo]:
        return [self._info(kind, name) for name in self.names(kind)]

    def info(self, kind: str, name: str) -> ProviderInfo | None:
        return self._info(kind, name) if name in self.names(kind) else None

    def _info(self, kind: str, name: str) -> ProviderInfo:
        return ProviderInfo(url=f"{self.server_url}/api/{kind}/{name}", name=name)

    @property
    def functions(self) -> frozenset[str]:
        return frozenset(self.names("function"))


class ProviderFactory:
    """Derives providers from metadata, validating locale and selectors."""

    def __init__(self, locales: LocaleTable, server_url: str):
        self._locales = locales
        self._server_url = server_url.rstrip("/")

    def default(self, locale: str) -> SpreadsheetProvider:
        return SpreadsheetProvider(
            locale=self._locales.require(locale),
            server_url=self._server_url,
            selections=BUILTIN_PROVIDERS,
        )

    def provider_for(self, metadata: SpreadsheetMetadata) -> SpreadsheetProvider:
        """Narrow the built-in providers to *metadata*'s selectors.

        Raises :class:`InvalidMetadataError` for a missing or unsupported
        locale, or a selector naming an unknown provider.
        """
        if not metadata.locale:
            raise InvalidMetadataError(f"Spreadsheet {metadata.spreadsheet_id} has no locale")
        locale = self._locales.require(metadata.locale)
        selections = {
            kind: self._select(kind, getattr(metadata, field))
            for kind, field in PROVIDER_KINDS.items()
        }
        return SpreadsheetProvider(
            locale=locale,
            server_url=self._server_url,
            selections=MappingProxyType(selections),
        )

    @staticmethod
    def _select(kind: str, selected: Iterable[str] | None) -> tuple[str, ...]:
        available = BUILTIN_PROVIDERS[kind]
        if selected is None:
            return available
        unknown = [name for name in selected if name not in available]
        if unknown:
            raise InvalidMetadataError(f"Unknown {kind} {', '.join(sorted(unknown))}")
        return tuple(dict.fromkeys(selected))
