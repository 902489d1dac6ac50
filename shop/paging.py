"""
shop/paging.py -- Page requests and the page envelope returned by listing endpoints.

A PageRequest doubles as the cache key for paginated listings: two requests
with the same page, size and sort share one cache entry.
"""

import math
from dataclasses import dataclass

from cache.service import make_key
from core.errors import BadRequestError

MAX_PAGE_SIZE = 200


@dataclass(frozen=True)
class PageRequest:
    page_number: int = 0
    page_size: int = 50
    sort_by: str = "id"
    sort_order: str = "asc"

    def __post_init__(self) -> None:
        if self.page_number < 0:
            raise BadRequestError("page_number must be 0 or greater")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise BadRequestError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        if self.sort_order.lower() not in ("asc", "desc"):
            raise BadRequestError("sort_order must be 'asc' or 'desc'")

    @property
    def offset(self) -> int:
        return self.page_number * self.page_size

    @property
    def descending(self) -> bool:
        return self.sort_order.lower() == "desc"

    def cache_key(self, *extra) -> str:
        return make_key(*extra, self.page_number, self.page_size, self.sort_by, self.sort_order.lower())


def page_envelope(content: list, page: PageRequest, total: int) -> dict:
    total_pages = math.ceil(total / page.page_size) if total else 0
    return {
        "content": content,
        "page_number": page.page_number,
        "page_size": page.page_size,
        "total_elements": total,
        "total_pages": total_pages,
        "last_page": page.page_number + 1 >= total_pages,
    }
