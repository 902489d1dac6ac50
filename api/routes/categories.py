"""
api/routes/categories.py -- Category listing (public) and maintenance (admin).

Routes:
  GET    /api/public/categories               -- paginated, cached (categories)
  POST   /api/admin/categories                -- create; 409 on duplicate name
  PUT    /api/admin/categories/{category_id}  -- rename
  DELETE /api/admin/categories/{category_id}  -- delete with its products
"""

from fastapi import APIRouter, Depends, Request

from api.models import CategoryIn, CategoryOut, PageResponse
from api.pagination import page_params
from auth.dependencies import require_admin
from auth.models import Principal
from shop.catalog import CatalogService
from shop.paging import PageRequest

router = APIRouter()


@router.get("/public/categories", response_model=PageResponse[CategoryOut])
def list_categories(request: Request, page: PageRequest = Depends(page_params("category_id"))) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.list_categories(page)


@router.post("/admin/categories", response_model=CategoryOut, status_code=201)
def create_category(
    request: Request,
    body: CategoryIn,
    admin: Principal = Depends(require_admin),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.create_category(body.category_name)


@router.put("/admin/categories/{category_id}", response_model=CategoryOut)
def update_category(
    request: Request,
    category_id: int,
    body: CategoryIn,
    admin: Principal = Depends(require_admin),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.update_category(category_id, body.category_name)


@router.delete("/admin/categories/{category_id}", response_model=CategoryOut)
def delete_category(
    request: Request,
    category_id: int,
    admin: Principal = Depends(require_admin),
) -> dict:
    """Delete a category. Its products (and their cart lines) go with it."""
    catalog: CatalogService = request.app.state.catalog
    return catalog.delete_category(category_id)
