"""
api/pagination.py -- Query-string pagination shared by every listing route.

    GET /api/public/products?page_number=0&page_size=20&sort_by=price&sort_order=desc

page_params(default_sort) builds a FastAPI dependency that turns those four
query parameters into a shop.paging.PageRequest. Out-of-range values surface
as 400 through BadRequestError, the same as any other rejected input.
"""

from typing import Optional

from fastapi import Query

from core.config import get_settings
from shop.paging import PageRequest


def page_params(default_sort: str):
    def _dependency(
        page_number: int = Query(0, description="Zero-based page index."),
        page_size: Optional[int] = Query(None, description="Items per page."),
        sort_by: str = Query(default_sort),
        sort_order: str = Query("asc", description="asc or desc"),
    ) -> PageRequest:
        return PageRequest(
            page_number=page_number,
            page_size=page_size if page_size is not None else get_settings().page_size_default,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    return _dependency
