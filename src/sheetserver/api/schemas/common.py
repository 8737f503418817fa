"""
Common API schemas: RFC 7807 problem details.

Every non-2xx response carries a :class:`ProblemDetail` body.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Structured error detail for field-level or nested errors."""

    code: str = Field(description="Machine-readable error code (e.g., 'INVALID_SELECTION')")
    message: str = Field(description="Human-readable error description")
    field: str | None = Field(default=None, description="Field path if error is field-specific")


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Error categories:
        - ``BAD_REQUEST`` (400): malformed id, selection, body or metadata
        - ``NOT_FOUND`` (404): unrouted path, missing spreadsheet, unknown label
        - ``METHOD_NOT_ALLOWED`` (405): resource has no handler for the method
        - ``NOT_ACCEPTABLE`` (406): ``Accept`` excludes JSON
        - ``UNSUPPORTED_MEDIA_TYPE`` (415): body is not JSON
        - ``INTERNAL`` (500): unexpected server error
    """

    type: str = Field(default="about:blank", description="URI identifying the problem type")
    title: str = Field(description="Short human-readable summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Human-readable explanation")
    instance: str = Field(default="", description="URI of the specific occurrence")
    errors: list[ErrorDetail] = Field(default_factory=list, description="Nested errors")
