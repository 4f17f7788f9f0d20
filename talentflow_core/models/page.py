"""Paged list responses."""

import math
from typing import Generic, List, Sequence, TypeVar

from pydantic import BaseModel, Field

ItemT = TypeVar("ItemT")


class Pagination(BaseModel):
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_count: int
    total_pages: int
    has_more: bool


class Page(BaseModel, Generic[ItemT]):
    """One page of a filtered, sorted list."""

    data: List[ItemT]
    pagination: Pagination


def paginate(items: Sequence[ItemT], page: int = 1, page_size: int = 10) -> Page[ItemT]:
    """Slice `items` into 1-based page `page`. Pages past the end are empty."""
    total_pages = math.ceil(len(items) / page_size)
    start = (page - 1) * page_size
    return Page(
        data=list(items[start:start + page_size]),
        pagination=Pagination(
            page=page,
            page_size=page_size,
            total_count=len(items),
            total_pages=total_pages,
            has_more=page < total_pages,
        ),
    )
