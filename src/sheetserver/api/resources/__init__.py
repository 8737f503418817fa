"""Resource mappings served by the sheet server."""

from __future__ import annotations

from sheetserver.api.resources.cells import cell_mapping
from sheetserver.api.resources.columns import column_mapping, row_mapping
from sheetserver.api.resources.labels import cell_reference_mapping, label_mapping
from sheetserver.api.resources.locales import locale_mappings
from sheetserver.api.resources.metadata import metadata_property_mapping, spreadsheet_mapping
from sheetserver.api.resources.plugins import plugin_mapping
from sheetserver.api.resources.providers import provider_mapping, provider_mappings
from sheetserver.core.stores import PluginStore
from sheetserver.hateos.mapping import ResourceMapping

# Provider kinds a spreadsheet answers for itself, narrowed by its metadata.
TENANT_PROVIDER_KINDS = ("comparator", "formatter", "function", "parser")


def engine_mappings() -> list[ResourceMapping]:
    """Resources below ``/api/spreadsheet/<id>``."""
    return [
        cell_mapping(),
        column_mapping(),
        row_mapping(),
        label_mapping(),
        cell_reference_mapping(),
        metadata_property_mapping(),
        *(provider_mapping(kind) for kind in TENANT_PROVIDER_KINDS),
    ]


def feature_mappings(plugins: PluginStore) -> list[ResourceMapping]:
    """Server-wide resources below ``/api``, excluding spreadsheets."""
    return [*provider_mappings(), *locale_mappings(), plugin_mapping(plugins)]


__all__ = [
    "TENANT_PROVIDER_KINDS",
    "engine_mappings",
    "feature_mappings",
    "spreadsheet_mapping",
]
