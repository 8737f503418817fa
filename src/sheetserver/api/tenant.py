"""
Per-spreadsheet (tenant) contexts and the cache that owns them.

Every spreadsheet gets a :class:`TenantContext`: its stores, its engine,
the provider derived from its metadata and a router over the engine
resources.  Building one is comparatively expensive, so contexts are built
on first use and kept in a :class:`TenantContextCache` until the
spreadsheet is deleted.

Concurrency:
    ``resolve`` builds at most one context per spreadsheet id even when many
    requests for a new id arrive together.  Lookups of cached ids never
    wait on the construction of another id.  A failed construction caches
    nothing, so the next request tries again.

Tags:
    sheet-server, api, tenant, cache, multi-tenant

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sheetserver.core.ids import SpreadsheetId
from sheetserver.core.locales import LocaleTable
from sheetserver.core.logging import get_logger
from sheetserver.core.marshalling import JsonMarshaller
from sheetserver.core.model import SpreadsheetMetadata
from sheetserver.core.providers import ProviderFactory, SpreadsheetProvider
from sheetserver.core.stores import MetadataStore, StoreRepository
from sheetserver.engine.engine import SpreadsheetEngine
from sheetserver.engine.patch import label_resolving_pre_processor
from sheetserver.hateos.context import ContextForwarding, HandlerContext
from sheetserver.hateos.mapping import ResourceMapping, build_router
from sheetserver.hateos.routing import Router

logger = get_logger(__name__)

ENGINE_BASE_PATH = "/api/spreadsheet/*"


@dataclass(frozen=True)
class TenantContext:
    """Everything needed to serve requests for one spreadsheet."""

    spreadsheet_id: SpreadsheetId
    repository: StoreRepository
    metadata: SpreadsheetMetadata
    provider: SpreadsheetProvider
    engine: SpreadsheetEngine
    router: Router


@dataclass(frozen=True)
class EngineHandlerContext(ContextForwarding):
    """Handler context of the per-spreadsheet engine resources."""

    handler_context: HandlerContext
    spreadsheet_id: SpreadsheetId
    repository: StoreRepository
    engine: SpreadsheetEngine
    save_metadata: Callable[[SpreadsheetMetadata], SpreadsheetMetadata]

    @property
    def metadata(self) -> SpreadsheetMetadata:
        """Current metadata, read through to the store."""
        return self.repository.metadata.load(self.spreadsheet_id)


class TenantContextFactory:
    """Builds tenant contexts from stored metadata."""

    def __init__(
        self,
        *,
        metadata_store: MetadataStore,
        provider_factory: ProviderFactory,
        marshaller: JsonMarshaller,
        locales: LocaleTable,
        server_url: str,
        mappings: Sequence[ResourceMapping],
        default_count: int = 100,
    ):
        self._metadata_store = metadata_store
        self._provider_factory = provider_factory
        self._marshaller = marshaller
        self._locales = locales
        self._server_url = server_url
        self._mappings = tuple(mappings)
        self._default_count = default_count
        self._tenants: TenantContextCache | None = None

    def bind(self, tenants: TenantContextCache) -> None:
        """Attach the cache whose entries are refreshed when metadata is saved."""
        self._tenants = tenants

    def create(self, spreadsheet_id: SpreadsheetId) -> TenantContext:
        """Build the context of *spreadsheet_id*.

        Raises :class:`MissingStoreError` when no such spreadsheet exists and
        :class:`InvalidMetadataError` when its metadata yields no provider.
        """
        metadata = self._metadata_store.load(spreadsheet_id)
        repository = StoreRepository(metadata=self._metadata_store)
        return self._build(spreadsheet_id, repository, metadata)

    __call__ = create

    def refresh(self, context: TenantContext, metadata: SpreadsheetMetadata) -> TenantContext:
        """A new context for *metadata* sharing the stores of *context*."""
        return self._build(context.spreadsheet_id, context.repository, metadata)

    def save_metadata(self, metadata: SpreadsheetMetadata) -> SpreadsheetMetadata:
        """Validate and store *metadata*, refreshing a cached context of it."""
        self._provider_factory.provider_for(metadata)
        saved = self._metadata_store.save(metadata)
        if self._tenants is not None:
            # Rebuilt from the store, so the last of several racing saves wins.
            self._tenants.refresh(
                saved.spreadsheet_id,
                lambda context: self.refresh(context, self._metadata_store.load(context.spreadsheet_id)),
            )
        return saved

    def _build(
        self,
        spreadsheet_id: SpreadsheetId,
        repository: StoreRepository,
        metadata: SpreadsheetMetadata,
    ) -> TenantContext:
        provider = self._provider_factory.provider_for(metadata)
        engine = SpreadsheetEngine(spreadsheet_id, repository, provider)
        handler_context = HandlerContext(
            marshaller=self._marshaller,
            locales=self._locales,
            provider=provider,
            server_url=self._server_url,
            default_count=self._default_count,
            pre_processor=label_resolving_pre_processor(repository.labels),
        )
        engine_context = EngineHandlerContext(
            handler_context=handler_context,
            spreadsheet_id=spreadsheet_id,
            repository=repository,
            engine=engine,
            save_metadata=self.save_metadata,
        )
        return TenantContext(
            spreadsheet_id=spreadsheet_id,
            repository=repository,
            metadata=metadata,
            provider=provider,
            engine=engine,
            router=build_router(ENGINE_BASE_PATH, self._mappings, engine_context),
        )


class TenantContextCache:
    """Thread-safe map of spreadsheet id → :class:`TenantContext`."""

    def __init__(self, factory: Callable[[SpreadsheetId], TenantContext]):
        self._factory = factory
        self._contexts: dict[SpreadsheetId, TenantContext] = {}
        self._creation_locks: dict[SpreadsheetId, threading.Lock] = {}
        self._lock = threading.Lock()

    def resolve(self, spreadsheet_id: SpreadsheetId) -> TenantContext:
        """Return the cached context, building it on first use."""
        context = self._contexts.get(spreadsheet_id)
        if context is not None:
            return context

        # Construction runs outside the global lock; only callers of the same id wait.
        with self._creation_lock(spreadsheet_id):
            context = self._contexts.get(spreadsheet_id)
            if context is None:
                context = self._factory(spreadsheet_id)
                with self._lock:
                    self._contexts[spreadsheet_id] = context
                logger.info("tenant.created", spreadsheet_id=str(spreadsheet_id))
        return context

    def refresh(
        self,
        spreadsheet_id: SpreadsheetId,
        update: Callable[[TenantContext], TenantContext],
    ) -> TenantContext | None:
        """Replace a cached context with ``update(context)``; uncached ids are left alone.

        Waits for a construction of the same id in progress, so a context
        built from metadata older than the caller's is never left published.
        """
        with self._creation_lock(spreadsheet_id):
            current = self._contexts.get(spreadsheet_id)
            if current is None:
                return None
            refreshed = update(current)
            with self._lock:
                self._contexts[spreadsheet_id] = refreshed
        logger.info("tenant.refreshed", spreadsheet_id=str(spreadsheet_id))
        return refreshed

    def delete(self, spreadsheet_id: SpreadsheetId) -> bool:
        """Evict *spreadsheet_id*; returns whether a context was cached.

        Waits for a construction of the same id in progress and evicts what
        it published.
        """
        with self._creation_lock(spreadsheet_id):
            with self._lock:
                removed = self._contexts.pop(spreadsheet_id, None)
        if removed is not None:
            logger.info("tenant.evicted", spreadsheet_id=str(spreadsheet_id))
        return removed is not None

    def _creation_lock(self, spreadsheet_id: SpreadsheetId) -> threading.Lock:
        # Kept for the life of the cache: a lock handed to a builder must stay
        # the one later callers of the same id wait on.
        with self._lock:
            return self._creation_locks.setdefault(spreadsheet_id, threading.Lock())

    def __contains__(self, spreadsheet_id: object) -> bool:
        return spreadsheet_id in self._contexts

    def __len__(self) -> int:
        return len(self._contexts)
