import logging
from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from dependencies import get_backend_client
from schemas.vendor import Product, ProductList
from utils.api_client import BackendClient
from utils.errors import RequestAbandonedError
from utils.request_scope import RequestScope, get_request_scope

router = APIRouter(
    prefix="/marketplace",
    tags=["Marketplace"]
)
logger = logging.getLogger(__name__)


def filter_products(
    products: List[Product],
    q: Optional[str] = None,
    category: Optional[str] = None,
    vendor: Optional[str] = None,
    available_only: bool = True,
) -> List[Product]:
    out = []
    needle = (q or "").strip().lower()
    for product in products:
        if available_only and not product.is_available:
            continue
        if category and product.category.lower() != category.lower():
            continue
        if vendor and product.vendor_id != vendor:
            continue
        # Search by name, description or tag
        if needle:
            haystack = " ".join([product.name, product.description, *product.tags]).lower()
            if needle not in haystack:
                continue
        out.append(product)
    return out


async def _fetch_products(client: BackendClient, scope: RequestScope) -> List[Product]:
    try:
        result = await scope.run(client.get_available_products())
    except RequestAbandonedError:
        raise HTTPException(status_code=499, detail="Request abandoned")
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message or "Failed to load products")

    products = []
    for raw in result.data.get("products") or result.data.get("items") or []:
        try:
            products.append(Product.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping unreadable product %s: %s", raw.get("_id") if isinstance(raw, dict) else raw, e)
    return products


@router.get("/products", response_model=ProductList)
async def list_products_for_marketplace(
    q: Optional[str] = Query(None, description="Search by name, description or tag"),
    category: Optional[str] = Query(None, description="Filter by category"),
    vendor: Optional[str] = Query(None, description="Filter by vendor id"),
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
):
    products = await _fetch_products(client, scope)
    items = filter_products(products, q=q, category=category, vendor=vendor)
    return {"items": items, "total": len(items)}


# Retrieve unique product categories
@router.get("/categories", response_model=List[str])
async def get_unique_categories(
    client: BackendClient = Depends(get_backend_client),
    scope: RequestScope = Depends(get_request_scope),
):
    products = await _fetch_products(client, scope)
    return sorted({p.category for p in products if p.category})
