"""
Structured error types for sheet-server.

Every failure raised below the HTTP boundary is a :class:`SheetServerError`
(or a plain ``ValueError`` from parsing/validation).  Handlers never pick
HTTP status codes themselves: the single translator
:func:`status_for_exception` maps an exception to a status, so every
resource mapping shares identical failure semantics.

Manifesto:
    - **Typed hierarchy:** the error class carries its category
    - **One translator:** status codes are decided in exactly one place
    - **No swallowing:** errors propagate to the HTTP layer untouched

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────┐
        │                     SheetServerError                        │
        │                (category, message, cause)                   │
        ├────────────────────────────────────────────────────────────┤
        │  BadRequestError (400)        MissingStoreError (404)      │
        │     MissingSpreadsheetIdError    UnknownLabelError         │
        │     InvalidSpreadsheetIdError                              │
        │     InvalidSelectionError     MethodNotAllowedError (405)  │
        │     InvalidMetadataError      NotAcceptableError (406)     │
        │                               UnsupportedMediaTypeError    │
        │                                 (415)                      │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> status_for_exception(UnknownLabelError("Total"))
    404
    >>> status_for_exception(ValueError("bad"))
    400
    >>> status_for_exception(RuntimeError("boom"))
    500

Tags:
    error-handling, exception-hierarchy, http-status, sheet-server

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from http import HTTPStatus
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories, one per HTTP failure class the server emits."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    NOT_ACCEPTABLE = "NOT_ACCEPTABLE"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    INTERNAL = "INTERNAL"


# ── Category → HTTP status mapping ───────────────────────────────────────

CATEGORY_TO_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.BAD_REQUEST: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.METHOD_NOT_ALLOWED: 405,
    ErrorCategory.NOT_ACCEPTABLE: 406,
    ErrorCategory.UNSUPPORTED_MEDIA_TYPE: 415,
    ErrorCategory.INTERNAL: 500,
}


class SheetServerError(Exception):
    """
    Base exception for all sheet-server errors.

    Subclasses set ``default_category``; the category decides the HTTP
    status through :data:`CATEGORY_TO_STATUS`.

    Args:
        message: Human readable description, rendered as the problem detail.
        category: Overrides the class default category.
        cause: Underlying exception, chained as ``__cause__``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def status(self) -> int:
        return CATEGORY_TO_STATUS.get(self.category, 500)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# BAD REQUEST ERRORS
# =============================================================================


class BadRequestError(SheetServerError):
    """Malformed request: never retried, the caller must fix it."""

    default_category = ErrorCategory.BAD_REQUEST


class MissingSpreadsheetIdError(BadRequestError):
    """The path has no spreadsheet id segment where one is required."""

    def __init__(self, message: str = "Missing SpreadsheetId", **kwargs: Any):
        super().__init__(message, **kwargs)


class InvalidSpreadsheetIdError(BadRequestError):
    """The spreadsheet id segment is present but not a hex token."""


class InvalidSelectionError(BadRequestError):
    """A cell, column, row, range or label selection could not be parsed."""


class InvalidMetadataError(BadRequestError):
    """Spreadsheet metadata is malformed (locale, selectors, properties)."""


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class MissingStoreError(SheetServerError):
    """A store lookup found no entry for the requested key."""

    default_category = ErrorCategory.NOT_FOUND


class UnknownLabelError(MissingStoreError):
    """A label name has no mapping in the tenant's label store."""

    def __init__(self, label: str, **kwargs: Any):
        super().__init__(f"Label not found: {label}", **kwargs)
        self.label = label


# =============================================================================
# PROTOCOL ERRORS
# =============================================================================


class MethodNotAllowedError(SheetServerError):
    """The resource exists but has no handler for the request method."""

    default_category = ErrorCategory.METHOD_NOT_ALLOWED

    def __init__(self, method: str, allowed: Iterable[str] = (), **kwargs: Any):
        super().__init__(f"Method not allowed: {method}", **kwargs)
        self.method = method
        self.allowed = tuple(sorted(set(allowed)))


class NotAcceptableError(SheetServerError):
    default_category = ErrorCategory.NOT_ACCEPTABLE


class UnsupportedMediaTypeError(SheetServerError):
    default_category = ErrorCategory.UNSUPPORTED_MEDIA_TYPE

    def __init__(self, content_type: str | None, **kwargs: Any):
        super().__init__(f"Unsupported content type: {content_type or '(none)'}", **kwargs)
        self.content_type = content_type


# ── Translator ───────────────────────────────────────────────────────────


def status_for_exception(exc: BaseException) -> int:
    """Translate any exception raised while handling a request to an HTTP status.

    ``ValueError`` (which includes pydantic ``ValidationError`` and
    ``json.JSONDecodeError``) is a malformed request; anything unknown is 500.
    """
    if isinstance(exc, SheetServerError):
        return exc.status
    if isinstance(exc, ValueError):
        return 400
    return 500


def title_for_status(status: int) -> str:
    """Standard reason phrase for *status* (``404`` → ``"Not Found"``)."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


__all__ = [
    "CATEGORY_TO_STATUS",
    "BadRequestError",
    "ErrorCategory",
    "InvalidMetadataError",
    "InvalidSelectionError",
    "InvalidSpreadsheetIdError",
    "MethodNotAllowedError",
    "MissingSpreadsheetIdError",
    "MissingStoreError",
    "NotAcceptableError",
    "SheetServerError",
    "UnknownLabelError",
    "UnsupportedMediaTypeError",
    "status_for_exception",
    "title_for_status",
]
