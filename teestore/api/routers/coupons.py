from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.session_async import get_async_db
from teestore.schemas.coupon import CouponPublicRead, CouponValidateRequest, CouponValidationRead
from teestore.services import coupon_service

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.get("/public", response_model=list[CouponPublicRead])
async def list_public_coupons(db: AsyncSession = Depends(get_async_db)):
    coupons = await coupon_service.list_public_coupons(db)
    return [CouponPublicRead.model_validate(coupon, from_attributes=True) for coupon in coupons]


@router.post("/validate", response_model=CouponValidationRead)
async def validate_coupon(
    payload: CouponValidateRequest,
    db: AsyncSession = Depends(get_async_db),
):
    # solo lectura: el uso se consume recién en el checkout
    validation = await coupon_service.validate_coupon(db, payload.code, payload.subtotal)
    return CouponValidationRead.model_validate(validation, from_attributes=True)
