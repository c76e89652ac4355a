from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .pagination import PaginatedResponseOptions, PaginationInfo


class StandardResponseOptions(BaseModel):
    """Per-route envelope configuration built when the route is declared."""

    model_config = ConfigDict(frozen=True)

    paginated: PaginatedResponseOptions | None = None
    bypass: bool = False

    @property
    def is_paginated(self) -> bool:
        return self.paginated is not None


class ResponseEnvelope(BaseModel):
    """Standard wrapper placed around a handler's return value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    is_array: bool = False
    is_paginated: bool | None = None
    pagination: PaginationInfo | None = None
    message: str | None = None
    data: Any = None

    def to_payload(self) -> dict[str, Any]:
        body = self.model_dump(by_alias=True, exclude_none=True, exclude={"data"})
        body["data"] = self.data
        return body
