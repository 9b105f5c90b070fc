from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.operations import commit_async
from teestore.db.session_async import get_async_db
from teestore.schemas.catalog import (
    ProductCreate,
    ProductOnSaleRead,
    ProductPriceBatchRequest,
    ProductPriceRead,
    ProductRead,
    ProductUpdate,
)
from teestore.services import catalog_service, pricing_service
from teestore.services.exceptions import ResourceNotFoundError

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=list[ProductRead])
async def list_products(
    category_id: UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.list_products(db, category_id=category_id, limit=limit, offset=offset)


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_service.create_product(db, payload)
    await pricing_service.refresh_price_cache(db, [product.id])
    await commit_async(db)
    await db.refresh(product)
    return product


# rutas fijas antes de /{product_id}
@router.get("/on-sale", response_model=list[ProductOnSaleRead])
async def list_on_sale(
    category_id: UUID | None = Query(default=None),
    db: AsyncSession = Depends(get_async_db),
):
    products = await catalog_service.list_products(db, category_id=category_id, limit=200)
    resolutions = await pricing_service.resolve_products(db, products)
    on_sale = []
    for product in products:
        resolution = resolutions[product.id]
        if resolution.has_discount or product.is_on_clearance:
            on_sale.append(
                ProductOnSaleRead(
                    product=ProductRead.model_validate(product, from_attributes=True),
                    pricing=ProductPriceRead.model_validate(resolution, from_attributes=True),
                )
            )
    return on_sale


@router.post("/prices", response_model=dict[UUID, ProductPriceRead])
async def batch_prices(
    payload: ProductPriceBatchRequest,
    db: AsyncSession = Depends(get_async_db),
):
    products = await catalog_service.get_products(db, payload.product_ids)
    if len(products) != len(set(payload.product_ids)):
        raise ResourceNotFoundError("One or more products not found")
    resolutions = await pricing_service.resolve_products(db, products)
    return {
        product_id: ProductPriceRead.model_validate(resolution, from_attributes=True)
        for product_id, resolution in resolutions.items()
    }


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(product_id: UUID, db: AsyncSession = Depends(get_async_db)):
    return await catalog_service.get_product(db, product_id)


@router.patch("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_service.get_product(db, product_id)
    product = await catalog_service.update_product(db, product, payload)
    await pricing_service.refresh_price_cache(db, [product.id])
    await commit_async(db)
    await db.refresh(product)
    return product


@router.get("/{product_id}/price", response_model=ProductPriceRead)
async def get_product_price(product_id: UUID, db: AsyncSession = Depends(get_async_db)):
    product = await catalog_service.get_product(db, product_id)
    resolution = await pricing_service.resolve_product(db, product)
    return ProductPriceRead.model_validate(resolution, from_attributes=True)
