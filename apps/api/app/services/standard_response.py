"""Standard response envelope and the per-request metadata it is built from.

Routes opt in by declaring one of the dependency factories below and by being
registered on a router whose ``route_class`` is :class:`StandardResponseRoute`::

    router = APIRouter(route_class=StandardResponseRoute)

    @router.get("/things")
    async def list_things(
        params: StandardParams = Depends(paginated_response(max_page_size=50)),
    ):
        params.set_pagination_info(count=await repo.count())
        return await repo.list(offset=params.offset, limit=params.limit)

The options struct is created once when the route is declared. The
:class:`StandardParams` context is created per request and stored on
``request.state``, so concurrent requests to the same route never observe
each other's pagination metadata.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Coroutine
from enum import Enum
from typing import Any

import structlog
from fastapi import Query, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.responses import Response

from ..domain.pagination import (
    DEFAULT_PAGE_SIZE,
    PaginatedResponseOptions,
    PaginationInfo,
    PaginationQuery,
    ResolvedPagination,
)
from ..domain.responses import ResponseEnvelope, StandardResponseOptions
from .pagination import resolve_pagination

logger = structlog.get_logger(__name__)

STATE_KEY = "standard_params"
DEFAULT_OPTIONS = StandardResponseOptions()


class StandardParams:
    """Request-scoped pagination and message state for one handler call."""

    def __init__(
        self,
        options: StandardResponseOptions,
        pagination: ResolvedPagination | None = None,
    ) -> None:
        self.options = options
        self._pagination = pagination
        self._message: str | None = None

    @property
    def pagination_info(self) -> PaginationInfo | None:
        if self._pagination is None:
            return None
        return self._pagination.info

    @property
    def limit(self) -> int:
        if self._pagination is None:
            return DEFAULT_PAGE_SIZE
        return self._pagination.query.limit

    @property
    def offset(self) -> int:
        if self._pagination is None:
            return 0
        return self._pagination.query.offset

    @property
    def message(self) -> str | None:
        return self._message

    def define_pagination_info(self, info: PaginationInfo) -> None:
        """Replace the pagination record outright."""

        if self._pagination is None:
            self._pagination = ResolvedPagination(
                query=_query_from_info(info), info=info
            )
        else:
            self._pagination = self._pagination.model_copy(update={"info": info})

    def set_pagination_info(self, **fields: Any) -> None:
        """Shallow-merge ``fields`` over the current pagination record."""

        current = self.pagination_info or PaginationInfo.from_options(self.options.paginated)
        self.define_pagination_info(current.model_copy(update=fields))

    def set_message(self, message: str | Enum) -> None:
        self._message = message.value if isinstance(message, Enum) else message


def _query_from_info(info: PaginationInfo) -> PaginationQuery:
    return PaginationQuery(
        limit=info.limit if info.limit is not None else info.default_page_size or DEFAULT_PAGE_SIZE,
        offset=info.offset or 0,
    )


def build_envelope(
    payload: Any,
    options: StandardResponseOptions,
    params: StandardParams | None = None,
) -> Any:
    """Wrap ``payload`` in the standard envelope described by ``options``."""

    if options.bypass:
        return payload

    envelope = ResponseEnvelope(
        success=True,
        is_array=isinstance(payload, (list, tuple)),
        data=payload,
    )
    if options.is_paginated:
        info = params.pagination_info if params is not None else None
        if info is None:
            info = PaginationInfo.from_options(options.paginated)
        if info.count is None:
            logger.debug("pagination_count_missing", query=info.query)
        envelope.is_paginated = True
        envelope.pagination = info
    if params is not None and params.message:
        envelope.message = params.message
    return envelope.to_payload()


def standard_response(
    options: StandardResponseOptions | None = None,
) -> Callable[..., Coroutine[Any, Any, StandardParams]]:
    """Dependency factory binding ``options`` to a route."""

    route_options = options or DEFAULT_OPTIONS

    if route_options.is_paginated:

        async def paginated_dependency(
            request: Request,
            limit: str | None = Query(default=None, description="Page size"),
            offset: str | None = Query(default=None, description="Records to skip"),
        ) -> StandardParams:
            resolved = resolve_pagination(limit, offset, route_options.paginated)
            return _attach(request, StandardParams(route_options, resolved))

        return paginated_dependency

    async def dependency(request: Request) -> StandardParams:
        return _attach(request, StandardParams(route_options))

    return dependency


def paginated_response(
    *,
    default_page_size: int | None = None,
    min_page_size: int | None = None,
    max_page_size: int | None = None,
) -> Callable[..., Coroutine[Any, Any, StandardParams]]:
    return standard_response(
        StandardResponseOptions(
            paginated=PaginatedResponseOptions(
                default_page_size=default_page_size,
                min_page_size=min_page_size,
                max_page_size=max_page_size,
            )
        )
    )


def raw_response() -> Callable[..., Coroutine[Any, Any, StandardParams]]:
    """Skip the envelope for this route and return the payload as-is."""

    return standard_response(StandardResponseOptions(bypass=True))


def _attach(request: Request, params: StandardParams) -> StandardParams:
    setattr(request.state, STATE_KEY, params)
    return params


class StandardResponseRoute(APIRoute):
    """APIRoute that wraps JSON responses in the standard envelope."""

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()

        async def handler(request: Request) -> Response:
            response = await original_handler(request)
            params: StandardParams | None = getattr(request.state, STATE_KEY, None)
            options = params.options if params is not None else DEFAULT_OPTIONS
            if options.bypass or not isinstance(response, JSONResponse):
                return response

            payload = json.loads(response.body) if response.body else None
            headers = {
                key: value
                for key, value in response.headers.items()
                if key.lower() not in {"content-length", "content-type"}
            }
            return JSONResponse(
                content=build_envelope(payload, options, params),
                status_code=response.status_code,
                headers=headers,
                background=response.background,
            )

        return handler
