"""Resolve limit/offset query parameters against per-route pagination options."""

from __future__ import annotations

import re

from pydantic import ValidationError

from ..core.errors import BadRequestError, field_error
from ..domain.pagination import (
    DEFAULT_PAGE_SIZE,
    PaginatedResponseOptions,
    PaginationInfo,
    PaginationQuery,
    ResolvedPagination,
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(raw: str | None) -> int | None:
    """Parse the leading integer of ``raw``; ``None`` when there is none.

    ``"20"`` -> 20, ``" 7 "`` -> 7, ``"10abc"`` -> 10, ``"abc"`` -> None.
    Digit runs past the interpreter's int conversion limit raise ``ValueError``.
    """

    if raw is None:
        return None
    match = _LEADING_INT.match(raw)
    if match is None:
        return None
    return int(match.group(1))


def _parse_param(name: str, raw: str | None) -> int | None:
    try:
        return parse_int(raw)
    except ValueError as exc:
        raise BadRequestError(
            "Invalid pagination parameters",
            errors=[field_error(name, f"{name} must be an integer number")],
        ) from exc


def _validate_query(limit: int, offset: int) -> PaginationQuery:
    try:
        return PaginationQuery(limit=limit, offset=offset)
    except ValidationError as exc:
        errors = [
            field_error(".".join(str(part) for part in error["loc"]), error["msg"])
            for error in exc.errors()
        ]
        raise BadRequestError("Invalid pagination parameters", errors=errors) from exc


def resolve_pagination(
    raw_limit: str | None,
    raw_offset: str | None,
    options: PaginatedResponseOptions | None = None,
) -> ResolvedPagination:
    """Validate the pagination query of a request.

    Defaults apply when a parameter is missing or not an integer, but only
    parameters the client actually sent are echoed back in ``info.query``,
    ``info.limit`` and ``info.offset``.
    """

    offset = _parse_param("offset", raw_offset)
    if offset is None:
        offset = 0
    limit = _parse_param("limit", raw_limit)
    if limit is None:
        limit = (options.default_page_size if options else None) or DEFAULT_PAGE_SIZE

    query = _validate_query(limit, offset)

    info = PaginationInfo.from_options(options)
    supplied: list[str] = []
    if raw_limit is not None:
        supplied.append(f"limit={raw_limit}")
        info.limit = query.limit
    if raw_offset is not None:
        supplied.append(f"offset={raw_offset}")
        info.offset = query.offset
    info.query = "&".join(supplied)

    if options is not None:
        if options.min_page_size and query.limit < options.min_page_size:
            raise BadRequestError(
                "Invalid pagination parameters",
                errors=[
                    field_error("limit", f"limit can't be smaller than {options.min_page_size}")
                ],
            )
        if options.max_page_size and query.limit > options.max_page_size:
            raise BadRequestError(
                "Invalid pagination parameters",
                errors=[
                    field_error("limit", f"limit can't be larger than {options.max_page_size}")
                ],
            )

    return ResolvedPagination(query=query, info=info)
