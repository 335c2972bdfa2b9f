"""
Products Router - read and delete stored products.
"""

import logging
import math
from fastapi import APIRouter, HTTPException, Query
from typing import List, Optional

from core.repositories import product_repo
from app.console.schemas import ProductPage, ProductResponse, ProductStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

SORT_FIELDS = {"created_at", "updated_at", "price", "title", "extraction_quality"}


@router.get("", response_model=ProductPage)
async def list_products(
    platform: Optional[str] = None,
    category: Optional[str] = None,
    keyword: Optional[str] = None,
    details_scraped: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    sort: str = "-created_at",
):
    """List products with filters and pagination."""
    if sort.lstrip("-+") not in SORT_FIELDS:
        raise HTTPException(status_code=400, detail=f"Unsupported sort field: {sort}")

    filters = {
        "platform": platform,
        "category": category,
        "keyword": keyword,
        "details_scraped": details_scraped,
    }
    items, total = await product_repo.find_many(filters, page=page, limit=limit, sort=sort)
    return ProductPage(
        items=[ProductResponse.model_validate(p) for p in items],
        total=total,
        page=page,
        limit=limit,
        pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/search/text", response_model=List[ProductResponse])
async def search_products(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Full-text search over titles and descriptions, best match first."""
    products = await product_repo.text_search(q, page=page, limit=limit)
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/stats/summary", response_model=ProductStats)
async def product_stats():
    return ProductStats(**await product_repo.stats())


@router.get("/{item_id}", response_model=ProductResponse)
async def get_product(item_id: str):
    product = await product_repo.find_by_item_id(item_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ProductResponse.model_validate(product)


@router.delete("/{item_id}")
async def delete_product(item_id: str):
    deleted = await product_repo.delete(item_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info(f"🗑️ Product {item_id} deleted")
    return {"item_id": item_id, "deleted": True}
