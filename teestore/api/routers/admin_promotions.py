from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.operations import commit_async
from teestore.db.session_async import get_async_db
from teestore.schemas.catalog import ProductPriceRead
from teestore.schemas.promotion import (
    ClearancePayload,
    PriceCacheReport,
    PromotionCreate,
    PromotionProductsPayload,
    PromotionRead,
    PromotionUpdate,
)
from teestore.services import pricing_service, promotion_service

router = APIRouter(prefix="/admin/promotions", tags=["admin-promotions"])


@router.post("", response_model=PromotionRead, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    payload: PromotionCreate,
    db: AsyncSession = Depends(get_async_db),
):
    promotion = await promotion_service.create_promotion(db, payload)
    await commit_async(db)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.get("", response_model=list[PromotionRead])
async def list_promotions(
    active: Optional[bool] = Query(default=None),
    db: AsyncSession = Depends(get_async_db),
):
    promotions = await promotion_service.list_promotions(db, active)
    return [PromotionRead.model_validate(promo, from_attributes=True) for promo in promotions]


@router.post("/clearance", response_model=PriceCacheReport)
async def mark_clearance(
    payload: ClearancePayload,
    db: AsyncSession = Depends(get_async_db),
):
    report = await promotion_service.mark_clearance(db, payload)
    await commit_async(db)
    return report


@router.post("/refresh-prices", response_model=PriceCacheReport)
async def refresh_prices(
    product_ids: Optional[list[UUID]] = None,
    db: AsyncSession = Depends(get_async_db),
):
    report = await pricing_service.refresh_price_cache(db, product_ids)
    await commit_async(db)
    return report


@router.get("/{promotion_id}", response_model=PromotionRead)
async def get_promotion(promotion_id: UUID, db: AsyncSession = Depends(get_async_db)):
    promotion = await promotion_service.get_promotion(db, promotion_id)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.patch("/{promotion_id}", response_model=PromotionRead)
async def update_promotion(
    promotion_id: UUID,
    payload: PromotionUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    promotion = await promotion_service.update_promotion(db, promotion_id, payload)
    await commit_async(db)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.delete("/{promotion_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_promotion(promotion_id: UUID, db: AsyncSession = Depends(get_async_db)):
    # baja lógica: la promoción queda inactiva, nunca se borra
    await promotion_service.set_active(db, promotion_id, False)
    await commit_async(db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{promotion_id}/activate", response_model=PromotionRead)
async def activate_promotion(promotion_id: UUID, db: AsyncSession = Depends(get_async_db)):
    promotion = await promotion_service.set_active(db, promotion_id, True)
    await commit_async(db)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.post("/{promotion_id}/deactivate", response_model=PromotionRead)
async def deactivate_promotion(promotion_id: UUID, db: AsyncSession = Depends(get_async_db)):
    promotion = await promotion_service.set_active(db, promotion_id, False)
    await commit_async(db)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.post("/{promotion_id}/products", response_model=PromotionRead)
async def apply_to_products(
    promotion_id: UUID,
    payload: PromotionProductsPayload,
    db: AsyncSession = Depends(get_async_db),
):
    promotion = await promotion_service.apply_to_products(db, promotion_id, payload.product_ids)
    await commit_async(db)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.get("/{promotion_id}/preview", response_model=ProductPriceRead)
async def preview_price(
    promotion_id: UUID,
    product_id: UUID = Query(...),
    db: AsyncSession = Depends(get_async_db),
):
    resolution = await promotion_service.preview_price(db, promotion_id, product_id)
    return ProductPriceRead.model_validate(resolution, from_attributes=True)
