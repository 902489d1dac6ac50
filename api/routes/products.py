"""
api/routes/products.py -- Product catalogue routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /api/public/products                             -- paginated; ?keyword= ?category=
  GET    /api/public/products/keyword/{keyword}           -- name search
  GET    /api/public/categories/{category_id}/products    -- products in one category
  GET    /api/admin/products                              -- every product
  POST   /api/admin/categories/{category_id}/product      -- list a product (admin is the seller)
  PUT    /api/admin/products/{product_id}
  PUT    /api/admin/products/{product_id}/image
  DELETE /api/admin/products/{product_id}
  GET    /api/seller/products                             -- caller's own products
  POST   /api/seller/categories/{category_id}/product
  PUT    /api/seller/products/{product_id}                -- own products only (403 otherwise)
  DELETE /api/seller/products/{product_id}

Public listings are cached per region (products, productsByCategory,
productsByKeyword); the seller view is per-caller and read straight from
the store.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import PageResponse, ProductImageUpdate, ProductIn, ProductOut, ProductUpdate
from api.pagination import page_params
from auth.dependencies import require_admin, require_seller
from auth.models import Principal
from shop.catalog import CatalogService
from shop.paging import PageRequest

router = APIRouter()

_product_page = page_params("product_id")


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/public/products", response_model=PageResponse[ProductOut])
def list_products(
    request: Request,
    keyword: Optional[str] = None,
    category: Optional[int] = None,
    page: PageRequest = Depends(_product_page),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.list_products(page, keyword=keyword, category_id=category)


@router.get("/public/products/keyword/{keyword}", response_model=PageResponse[ProductOut])
def products_by_keyword(request: Request, keyword: str, page: PageRequest = Depends(_product_page)) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.products_by_keyword(keyword, page)


@router.get("/public/categories/{category_id}/products", response_model=PageResponse[ProductOut])
def products_by_category(request: Request, category_id: int, page: PageRequest = Depends(_product_page)) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.products_by_category(category_id, page)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/admin/products", response_model=PageResponse[ProductOut])
def admin_list_products(
    request: Request,
    page: PageRequest = Depends(_product_page),
    admin: Principal = Depends(require_admin),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.list_products(page)


@router.post("/admin/categories/{category_id}/product", response_model=ProductOut, status_code=201)
def admin_add_product(
    request: Request,
    category_id: int,
    body: ProductIn,
    admin: Principal = Depends(require_admin),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.add_product(category_id, body.model_dump(), admin)


@router.put("/admin/products/{product_id}", response_model=ProductOut)
def admin_update_product(
    request: Request,
    product_id: int,
    body: ProductUpdate,
    admin: Principal = Depends(require_admin),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.update_product(product_id, body.model_dump(exclude_none=True), admin)


@router.put("/admin/products/{product_id}/image", response_model=ProductOut)
def admin_update_product_image(
    request: Request,
    product_id: int,
    body: ProductImageUpdate,
    admin: Principal = Depends(require_admin),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.update_product_image(product_id, body.image, admin)


@router.delete("/admin/products/{product_id}", response_model=ProductOut)
def admin_delete_product(
    request: Request,
    product_id: int,
    admin: Principal = Depends(require_admin),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.delete_product(product_id, admin)


# ---------------------------------------------------------------------------
# Seller
# ---------------------------------------------------------------------------


@router.get("/seller/products", response_model=PageResponse[ProductOut])
def seller_list_products(
    request: Request,
    page: PageRequest = Depends(_product_page),
    seller: Principal = Depends(require_seller),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.seller_products(seller.user_id, page)


@router.post("/seller/categories/{category_id}/product", response_model=ProductOut, status_code=201)
def seller_add_product(
    request: Request,
    category_id: int,
    body: ProductIn,
    seller: Principal = Depends(require_seller),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.add_product(category_id, body.model_dump(), seller)


@router.put("/seller/products/{product_id}", response_model=ProductOut)
def seller_update_product(
    request: Request,
    product_id: int,
    body: ProductUpdate,
    seller: Principal = Depends(require_seller),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.update_product(product_id, body.model_dump(exclude_none=True), seller)


@router.delete("/seller/products/{product_id}", response_model=ProductOut)
def seller_delete_product(
    request: Request,
    product_id: int,
    seller: Principal = Depends(require_seller),
) -> dict:
    catalog: CatalogService = request.app.state.catalog
    return catalog.delete_product(product_id, seller)
