"""Query parameter readers shared by resource handlers."""

from __future__ import annotations

from collections.abc import Mapping

from sheetserver.core.errors import BadRequestError


def int_parameter(
    parameters: Mapping[str, str],
    name: str,
    default: int | None = None,
    *,
    minimum: int | None = None,
) -> int | None:
    """Read *name* as an integer, or *default* when absent."""
    text = parameters.get(name)
    if text is None or text == "":
        return default
    try:
        value = int(text)
    except ValueError:
        raise BadRequestError(f"Invalid {name} {text!r}") from None
    if minimum is not None and value < minimum:
        raise BadRequestError(f"Invalid {name} {value}, must be >= {minimum}")
    return value


def paging(parameters: Mapping[str, str], default_count: int) -> tuple[int, int]:
    """``(offset, count)`` from the ``offset`` and ``count`` parameters."""
    offset = int_parameter(parameters, "offset", 0, minimum=0)
    count = int_parameter(parameters, "count", default_count, minimum=0)
    return offset, count
