"""
Handler contexts.

:class:`HandlerContext` carries the services every handler may use
(marshalling, locale, provider, caller identity).  Richer contexts hold a
``HandlerContext`` plus their own collaborators and forward to it through
:class:`ContextForwarding` rather than inheriting from it.

All contexts are frozen: ``for_request`` / ``set_pre_processor`` return a new
context sharing every unchanged collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, TypeVar

from pydantic import BaseModel

from sheetserver.core.locales import LocaleTable
from sheetserver.core.marshalling import JsonMarshaller, PreProcessor
from sheetserver.core.providers import SpreadsheetProvider
from sheetserver.hateos.routing import HttpRequest

M = TypeVar("M", bound=BaseModel)
C = TypeVar("C")


@dataclass(frozen=True)
class HandlerContext:
    marshaller: JsonMarshaller
    locales: LocaleTable
    provider: SpreadsheetProvider
    server_url: str
    default_count: int = 100
    user: str | None = None
    accept_language: str | None = None
    pre_processor: PreProcessor | None = None

    @property
    def locale(self) -> str:
        return self.provider.locale

    def marshall(self, value: Any) -> Any:
        return self.marshaller.marshall(value)

    def unmarshall(self, json: Any, model: type[M]) -> M:
        if self.pre_processor is not None:
            json = self.pre_processor(json, model)
        return self.marshaller.unmarshall(json, model)

    def type_name(self, value: Any) -> str | None:
        return self.marshaller.type_name(value)

    def for_request(self, request: HttpRequest) -> HandlerContext:
        """Bind the caller identity and language preferences of *request*."""
        return replace(self, user=request.user, accept_language=request.header("accept-language"))

    def set_pre_processor(self, pre_processor: PreProcessor | None) -> HandlerContext:
        return replace(self, pre_processor=pre_processor)


class ContextForwarding:
    """Forwards the :class:`HandlerContext` services of a composed context.

    Subclasses must be frozen dataclasses with a ``handler_context`` field.
    """

    handler_context: HandlerContext

    @property
    def user(self) -> str | None:
        return self.handler_context.user

    @property
    def locale(self) -> str:
        return self.handler_context.locale

    @property
    def locales(self) -> LocaleTable:
        return self.handler_context.locales

    @property
    def provider(self) -> SpreadsheetProvider:
        return self.handler_context.provider

    @property
    def server_url(self) -> str:
        return self.handler_context.server_url

    def marshall(self, value: Any) -> Any:
        return self.handler_context.marshall(value)

    def unmarshall(self, json: Any, model: type[M]) -> M:
        return self.handler_context.unmarshall(json, model)

    def type_name(self, value: Any) -> str | None:
        return self.handler_context.type_name(value)

    @property
    def accept_language(self) -> str | None:
        return self.handler_context.accept_language

    @property
    def default_count(self) -> int:
        return self.handler_context.default_count

    def for_request(self: C, request: HttpRequest) -> C:
        return replace(self, handler_context=self.handler_context.for_request(request))

    def set_pre_processor(self: C, pre_processor: PreProcessor | None) -> C:
        return replace(self, handler_context=self.handler_context.set_pre_processor(pre_processor))
