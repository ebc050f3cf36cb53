"""Reusable pagination for list endpoints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel

T = TypeVar("T")


class PaginationParams:
    """Inject as a FastAPI dependency for any list endpoint."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        page_size: int = Query(20, ge=1, le=100, description="Items per page"),
        search: str | None = Query(None, description="Free-text search"),
    ):
        self.page = page
        self.page_size = page_size
        self.search = search

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


def paginate(items: Sequence[T], params: PaginationParams) -> tuple[list[T], int]:
    """Slice an already-ordered sequence and return (page_items, total_count)."""
    total = len(items)
    return list(items[params.offset: params.offset + params.page_size]), total


def total_pages(total: int, page_size: int) -> int:
    return (total + page_size - 1) // page_size
