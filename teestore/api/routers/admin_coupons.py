from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.operations import commit_async
from teestore.db.session_async import get_async_db
from teestore.schemas.coupon import (
    CouponBulkGenerate,
    CouponCreate,
    CouponGenerate,
    CouponRead,
    CouponStats,
    CouponUpdate,
    DeactivateExpiredResponse,
)
from teestore.services import coupon_service

router = APIRouter(prefix="/admin/coupons", tags=["admin-coupons"])


@router.post("", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def create_coupon(payload: CouponCreate, db: AsyncSession = Depends(get_async_db)):
    coupon = await coupon_service.create_coupon(db, payload)
    await commit_async(db)
    return coupon


@router.post("/generate", response_model=CouponRead, status_code=status.HTTP_201_CREATED)
async def generate_coupon(payload: CouponGenerate, db: AsyncSession = Depends(get_async_db)):
    coupon = await coupon_service.generate_coupon(db, payload)
    await commit_async(db)
    return coupon


@router.post("/bulk-generate", response_model=list[CouponRead], status_code=status.HTTP_201_CREATED)
async def bulk_generate(payload: CouponBulkGenerate, db: AsyncSession = Depends(get_async_db)):
    coupons = await coupon_service.bulk_generate_coupons(db, payload)
    await commit_async(db)
    return coupons


@router.get("", response_model=list[CouponRead])
async def list_coupons(
    active: Optional[bool] = Query(default=None),
    is_public: Optional[bool] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_async_db),
):
    return await coupon_service.list_coupons(db, active=active, is_public=is_public, limit=limit, offset=offset)


@router.get("/stats", response_model=CouponStats)
async def coupon_stats(db: AsyncSession = Depends(get_async_db)):
    return await coupon_service.coupon_stats(db)


@router.post("/deactivate-expired", response_model=DeactivateExpiredResponse)
async def deactivate_expired(db: AsyncSession = Depends(get_async_db)):
    count = await coupon_service.deactivate_expired(db)
    await commit_async(db)
    return DeactivateExpiredResponse(deactivated=count)


@router.get("/{coupon_id}", response_model=CouponRead)
async def get_coupon(coupon_id: UUID, db: AsyncSession = Depends(get_async_db)):
    return await coupon_service.get_coupon(db, coupon_id)


@router.patch("/{coupon_id}", response_model=CouponRead)
async def update_coupon(
    coupon_id: UUID,
    payload: CouponUpdate,
    db: AsyncSession = Depends(get_async_db),
):
    coupon = await coupon_service.update_coupon(db, coupon_id, payload)
    await commit_async(db)
    return coupon


@router.patch("/{coupon_id}/toggle-public", response_model=CouponRead)
async def toggle_public(coupon_id: UUID, db: AsyncSession = Depends(get_async_db)):
    coupon = await coupon_service.toggle_public(db, coupon_id)
    await commit_async(db)
    return coupon


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_coupon(coupon_id: UUID, db: AsyncSession = Depends(get_async_db)):
    await coupon_service.delete_coupon(db, coupon_id)
    await commit_async(db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
