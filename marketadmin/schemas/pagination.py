"""Shared pagination schemas for list endpoints."""

import math

from pydantic import BaseModel, Field


class PageParams(BaseModel):
    """Query params for page-numbered list endpoints."""

    page: int = Field(default=1, ge=1, description="1-based page number")
    limit: int = Field(default=10, ge=1, le=100, description="Max items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PaginatedResponse(BaseModel):
    """Standard paginated response: items + total + page info."""

    items: list
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool

    @classmethod
    def build(cls, items: list, total: int, params: PageParams) -> "PaginatedResponse":
        total_pages = math.ceil(total / params.limit) if total else 0
        return cls(
            items=items,
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=total_pages,
            has_more=params.page < total_pages,
        )
