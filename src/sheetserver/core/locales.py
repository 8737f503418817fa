"""
Locale table: supported locale tags with their date-time and decimal-number
symbols.

Tags are BCP 47 ``language[-REGION]`` (``"en-AU"``); lookups are
case-insensitive and answer the canonical casing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from sheetserver.core.errors import InvalidMetadataError
from sheetserver.core.model import DateTimeSymbols, DecimalNumberSymbols, LocaleInfo

_TAG = re.compile(r"^([A-Za-z]{2,3})(?:[-_]([A-Za-z]{2}))?$")

_EN_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
_EN_WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
_FR_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]
_FR_WEEKDAYS = ["dimanche", "lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi"]
_DE_MONTHS = [
    "Januar", "Februar", "März", "April", "Mai", "Juni",
    "Juli", "August", "September", "Oktober", "November", "Dezember",
]
_DE_WEEKDAYS = ["Sonntag", "Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag"]


@dataclass(frozen=True)
class _LocaleData:
    tag: str
    text: str
    ampms: tuple[str, str]
    months: list[str]
    weekdays: list[str]
    currency: str
    decimal: str
    group: str


_LOCALES = [
    _LocaleData("en", "English", ("AM", "PM"), _EN_MONTHS, _EN_WEEKDAYS, "¤", ".", ","),
    _LocaleData("en-AU", "English (Australia)", ("am", "pm"), _EN_MONTHS, _EN_WEEKDAYS, "$", ".", ","),
    _LocaleData("en-GB", "English (United Kingdom)", ("am", "pm"), _EN_MONTHS, _EN_WEEKDAYS, "£", ".", ","),
    _LocaleData("en-NZ", "English (New Zealand)", ("am", "pm"), _EN_MONTHS, _EN_WEEKDAYS, "$", ".", ","),
    _LocaleData("en-US", "English (United States)", ("AM", "PM"), _EN_MONTHS, _EN_WEEKDAYS, "$", ".", ","),
    _LocaleData("fr", "Français", ("AM", "PM"), _FR_MONTHS, _FR_WEEKDAYS, "¤", ",", " "),
    _LocaleData("fr-CA", "Français (Canada)", ("a.m.", "p.m."), _FR_MONTHS, _FR_WEEKDAYS, "$", ",", " "),
    _LocaleData("fr-FR", "Français (France)", ("AM", "PM"), _FR_MONTHS, _FR_WEEKDAYS, "€", ",", " "),
    _LocaleData("de", "Deutsch", ("AM", "PM"), _DE_MONTHS, _DE_WEEKDAYS, "¤", ",", "."),
    _LocaleData("de-AT", "Deutsch (Österreich)", ("AM", "PM"), _DE_MONTHS, _DE_WEEKDAYS, "€", ",", " "),
    _LocaleData("de-DE", "Deutsch (Deutschland)", ("AM", "PM"), _DE_MONTHS, _DE_WEEKDAYS, "€", ",", "."),
]


def _abbreviate(names: list[str]) -> list[str]:
    return [name[:3] for name in names]


def normalize_locale_tag(tag: str) -> str:
    """``"EN_au"`` → ``"en-AU"``; raises :class:`InvalidMetadataError` when malformed."""
    match = _TAG.match(tag.strip()) if isinstance(tag, str) else None
    if match is None:
        raise InvalidMetadataError(f"Invalid locale {tag!r}")
    language, region = match.groups()
    return f"{language.lower()}-{region.upper()}" if region else language.lower()


class LocaleTable:
    """Read-only lookup over the supported locales."""

    def __init__(self) -> None:
        self._locales = {data.tag: data for data in _LOCALES}

    def __contains__(self, tag: str) -> bool:
        try:
            return normalize_locale_tag(tag) in self._locales
        except InvalidMetadataError:
            return False

    def _data(self, tag: str) -> _LocaleData | None:
        return self._locales.get(normalize_locale_tag(tag))

    def require(self, tag: str) -> str:
        """Canonical tag for a supported locale, else :class:`InvalidMetadataError`."""
        data = self._data(tag)
        if data is None:
            raise InvalidMetadataError(f"Unsupported locale {tag!r}")
        return data.tag

    def all(self) -> list[LocaleInfo]:
        return [LocaleInfo(locale_tag=d.tag, text=d.text) for d in self._locales.values()]

    def load(self, tag: str) -> LocaleInfo | None:
        data = self._data(tag)
        return None if data is None else LocaleInfo(locale_tag=data.tag, text=data.text)

    def starts_with(self, prefix: str) -> list[LocaleInfo]:
        """Locales whose tag or display text starts with *prefix*, ignoring case."""
        needle = prefix.lower()
        return [
            info
            for info in self.all()
            if info.locale_tag.lower().startswith(needle) or info.text.lower().startswith(needle)
        ]

    def date_time_symbols(self, tag: str) -> DateTimeSymbols | None:
        data = self._data(tag)
        if data is None:
            return None
        return DateTimeSymbols(
            locale_tag=data.tag,
            ampms=list(data.ampms),
            month_names=list(data.months),
            month_name_abbreviations=_abbreviate(data.months),
            weekday_names=list(data.weekdays),
            weekday_name_abbreviations=_abbreviate(data.weekdays),
        )

    def decimal_number_symbols(self, tag: str) -> DecimalNumberSymbols | None:
        data = self._data(tag)
        if data is None:
            return None
        return DecimalNumberSymbols(
            locale_tag=data.tag,
            currency_symbol=data.currency,
            decimal_separator=data.decimal,
            group_separator=data.group,
            monetary_decimal_separator=data.decimal,
        )

    def preferred(self, accept_language: str | None, default: str) -> str:
        """First supported tag from an ``Accept-Language`` header, else *default*."""
        for part in (accept_language or "").split(","):
            tag = part.split(";")[0].strip()
            if tag and tag in self:
                return self.require(tag)
        return self.require(default)
