"""
Composition root of the sheet server's request routing.

:class:`SpreadsheetHttpServer` owns the shared stores and the tenant cache
and chains the routers, first match wins:

1. ``/api/<kind>/**``            provider, locale and plugin resources
2. ``/api/spreadsheet/*/*/**``   per-spreadsheet resources via the id dispatcher
3. ``/api/**``                   spreadsheet metadata
4. ``/**``                       static files, when a directory is configured
5. anything else                 404

Tags:
    sheet-server, api, routing, composition-root

Doc-Types:
    api-reference
"""

from __future__ import annotations

from sheetserver.api.dispatcher import SpreadsheetIdPathDispatcher
from sheetserver.api.resources import engine_mappings, feature_mappings, spreadsheet_mapping
from sheetserver.api.resources.metadata import MetadataHandlerContext
from sheetserver.api.settings import SheetServerSettings
from sheetserver.api.static import StaticFileRouter
from sheetserver.api.tenant import TenantContextCache, TenantContextFactory
from sheetserver.core.locales import LocaleTable
from sheetserver.core.logging import get_logger
from sheetserver.core.marshalling import JsonMarshaller
from sheetserver.core.providers import ProviderFactory
from sheetserver.core.stores import MetadataStore, PluginStore
from sheetserver.hateos.context import HandlerContext
from sheetserver.hateos.mapping import build_router
from sheetserver.hateos.routing import HttpRequest, HttpResponse, RouteTableBuilder, Router, not_found

logger = get_logger(__name__)

API_BASE_PATH = "/api"

# Index of the spreadsheet id in /api/spreadsheet/<id>/...
SPREADSHEET_ID_PATH_COMPONENT = 2


class SpreadsheetHttpServer:
    def __init__(self, settings: SheetServerSettings):
        self.settings = settings
        self.marshaller = JsonMarshaller()
        self.locales = LocaleTable()
        self.metadata_store = MetadataStore()
        self.plugin_store = PluginStore()
        self.provider_factory = ProviderFactory(self.locales, settings.server_url)

        self.tenant_factory = TenantContextFactory(
            metadata_store=self.metadata_store,
            provider_factory=self.provider_factory,
            marshaller=self.marshaller,
            locales=self.locales,
            server_url=settings.server_url,
            mappings=engine_mappings(),
            default_count=settings.default_count,
        )
        self.tenants = TenantContextCache(self.tenant_factory)
        self.tenant_factory.bind(self.tenants)

        self.router = self._build_router()
        logger.info("server.created", server_url=settings.server_url, locale=settings.default_locale)

    def _build_router(self) -> Router:
        settings = self.settings
        context = HandlerContext(
            marshaller=self.marshaller,
            locales=self.locales,
            provider=self.provider_factory.default(settings.default_locale),
            server_url=settings.server_url,
            default_count=settings.default_count,
        )
        metadata_context = MetadataHandlerContext(
            handler_context=context,
            metadata_store=self.metadata_store,
            provider_factory=self.provider_factory,
            tenants=self.tenants,
            save_metadata=self.tenant_factory.save_metadata,
            default_locale=settings.default_locale,
        )

        builder = RouteTableBuilder()
        for mapping in feature_mappings(self.plugin_store):
            builder.add(f"{API_BASE_PATH}/{mapping.name}/**", build_router(API_BASE_PATH, [mapping], context))
        builder.add(
            f"{API_BASE_PATH}/spreadsheet/*/*/**",
            SpreadsheetIdPathDispatcher(SPREADSHEET_ID_PATH_COMPONENT, self.tenants),
        )
        builder.add(
            f"{API_BASE_PATH}/**",
            build_router(API_BASE_PATH, [spreadsheet_mapping()], metadata_context),
        )
        builder.add("/**", StaticFileRouter(settings.static_dir))
        return builder.build()

    def handle(self, request: HttpRequest) -> HttpResponse:
        """Route *request*; errors propagate to the caller's exception handlers."""
        return self.router.or_else(not_found)(request)
