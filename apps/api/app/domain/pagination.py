from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_PAGE_SIZE = 10


class PaginationQuery(BaseModel):
    """Effective limit/offset after defaults have been applied."""

    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=0)
    offset: int = Field(default=0, ge=0)


class PaginatedResponseOptions(BaseModel):
    """Static pagination configuration attached to a route at registration."""

    model_config = ConfigDict(frozen=True)

    default_page_size: int | None = Field(default=None, ge=0)
    min_page_size: int | None = Field(default=None, ge=0)
    max_page_size: int | None = Field(default=None, ge=0)


class PaginationInfo(BaseModel):
    """Pagination metadata echoed back to clients in the response envelope.

    ``limit`` and ``offset`` are only populated when the client supplied them,
    so consumers can tell an explicit request apart from the route defaults.
    ``count`` is filled in by the handler once the total is known.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    limit: int | None = None
    offset: int | None = None
    count: int | None = None
    default_page_size: int | None = None
    min_page_size: int | None = None
    max_page_size: int | None = None
    query: str = ""

    @classmethod
    def from_options(cls, options: PaginatedResponseOptions | None) -> "PaginationInfo":
        if options is None:
            return cls()
        return cls(**options.model_dump())

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ResolvedPagination(BaseModel):
    """Result of resolving a request's pagination query against route options."""

    query: PaginationQuery
    info: PaginationInfo
