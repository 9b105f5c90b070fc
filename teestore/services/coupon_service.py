from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.core.config import settings
from teestore.core.logging import get_logger
from teestore.core.metrics import record_coupon_redemption, record_coupon_validation
from teestore.db.operations import flush_async, refresh_async
from teestore.domain.enums import DiscountType
from teestore.models.coupon import Coupon
from teestore.schemas.coupon import (
    CouponBulkGenerate,
    CouponCreate,
    CouponGenerate,
    CouponStats,
    CouponUpdate,
)
from teestore.services.coupon_rules import (
    CouponValidation,
    evaluate_coupon,
    is_publicly_listed,
    normalize_code,
)
from teestore.services.exceptions import ConflictError, DomainValidationError, ResourceNotFoundError
from teestore.services.pricing import as_aware, utcnow

logger = get_logger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_MAX_CODE_ATTEMPTS = 10


# ---------------- Lookups ----------------
async def get_by_code(db: AsyncSession, code: str) -> Coupon | None:
    normalized = normalize_code(code)
    if not normalized:
        return None
    result = await db.execute(select(Coupon).where(Coupon.code == normalized).limit(1))
    return result.scalar_one_or_none()


async def get_coupon(db: AsyncSession, coupon_id: UUID) -> Coupon:
    coupon = await db.get(Coupon, coupon_id)
    if not coupon:
        raise ResourceNotFoundError("Coupon not found")
    return coupon


async def list_coupons(
    db: AsyncSession,
    *,
    active: Optional[bool] = None,
    is_public: Optional[bool] = None,
    limit: int = 100,
    offset: int = 0,
) -> Sequence[Coupon]:
    stmt = select(Coupon).order_by(Coupon.created_at.desc()).offset(offset).limit(limit)
    if active is not None:
        stmt = stmt.where(Coupon.is_active.is_(active))
    if is_public is not None:
        stmt = stmt.where(Coupon.is_public.is_(is_public))
    result = await db.execute(stmt)
    return result.scalars().all()


async def list_public_coupons(db: AsyncSession, now: Optional[datetime] = None) -> list[Coupon]:
    now = now or utcnow()
    result = await db.execute(
        select(Coupon).where(Coupon.is_public.is_(True)).order_by(Coupon.end_at)
    )
    return [coupon for coupon in result.scalars().all() if is_publicly_listed(coupon, now)]


# ---------------- Creation ----------------
def _default_window(start_at: Optional[datetime], end_at: Optional[datetime]) -> tuple[datetime, datetime]:
    start = start_at or utcnow()
    end = end_at or start + timedelta(days=settings.COUPON_DEFAULT_VALIDITY_DAYS)
    if as_aware(start) >= as_aware(end):
        raise DomainValidationError("start_at must be before end_at")
    return start, end


def _default_banner(code: str, discount_type: DiscountType, discount_value: float) -> str:
    if discount_type == DiscountType.percentage:
        offer = f"{Decimal(str(discount_value)).normalize():f}% off"
    else:
        offer = f"{settings.CURRENCY_SYMBOL}{Decimal(str(discount_value)):.2f} off"
    return f"Use code {code} for {offer} your order"


async def _code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(Coupon.id).where(Coupon.code == code).limit(1))
    return result.scalar_one_or_none() is not None


async def generate_code(db: AsyncSession, prefix: Optional[str] = None) -> str:
    head = normalize_code(prefix or "")
    for _ in range(_MAX_CODE_ATTEMPTS):
        body = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(settings.COUPON_CODE_LENGTH))
        candidate = f"{head}{body}"
        if not await _code_exists(db, candidate):
            return candidate
    raise ConflictError("Could not generate a unique coupon code")


def _build_coupon(code: str, payload: CouponGenerate | CouponCreate, *, is_active: bool = True) -> Coupon:
    start_at, end_at = _default_window(payload.start_at, payload.end_at)
    return Coupon(
        code=code,
        description=payload.description,
        discount_type=payload.discount_type,
        discount_value=payload.discount_value,
        start_at=start_at,
        end_at=end_at,
        is_active=is_active,
        usage_limit=payload.usage_limit,
        usage_count=0,
        minimum_purchase=payload.minimum_purchase,
        is_public=payload.is_public,
        banner_text=payload.banner_text
        or _default_banner(code, payload.discount_type, payload.discount_value),
        banner_color=payload.banner_color or settings.COUPON_DEFAULT_BANNER_COLOR,
    )


async def create_coupon(db: AsyncSession, payload: CouponCreate) -> Coupon:
    code = normalize_code(payload.code)
    if await _code_exists(db, code):
        raise ConflictError("Coupon code already exists")

    coupon = _build_coupon(code, payload, is_active=payload.is_active)
    db.add(coupon)
    await flush_async(db, coupon)
    await refresh_async(db, coupon)
    logger.info("Coupon created", extra={"coupon_id": str(coupon.id), "code": coupon.code})
    return coupon


async def generate_coupon(db: AsyncSession, payload: CouponGenerate) -> Coupon:
    code = await generate_code(db, payload.code_prefix)
    coupon = _build_coupon(code, payload)
    db.add(coupon)
    await flush_async(db, coupon)
    await refresh_async(db, coupon)
    return coupon


async def bulk_generate_coupons(db: AsyncSession, payload: CouponBulkGenerate) -> list[Coupon]:
    if payload.count > settings.COUPON_BULK_MAX:
        raise DomainValidationError(f"count cannot exceed {settings.COUPON_BULK_MAX}")

    coupons: list[Coupon] = []
    for _ in range(payload.count):
        # cada código se inserta antes de generar el siguiente para no repetir
        coupons.append(await generate_coupon(db, payload))
    logger.info("Coupons generated in bulk", extra={"count": len(coupons)})
    return coupons


# ---------------- Administration ----------------
async def update_coupon(db: AsyncSession, coupon_id: UUID, payload: CouponUpdate) -> Coupon:
    coupon = await get_coupon(db, coupon_id)
    changes = payload.model_dump(exclude_unset=True)

    start_at = changes.get("start_at") or coupon.start_at
    end_at = changes.get("end_at") or coupon.end_at
    if as_aware(start_at) >= as_aware(end_at):
        raise DomainValidationError("start_at must be before end_at")

    discount_type = DiscountType(changes.get("discount_type") or coupon.discount_type)
    discount_value = Decimal(str(changes.get("discount_value") or coupon.discount_value))
    if discount_type == DiscountType.percentage and discount_value > 100:
        raise DomainValidationError("percentage discounts cannot exceed 100")

    # usage_limit no admite null; se ignora como el resto de campos obligatorios
    new_limit = changes.get("usage_limit")
    if new_limit is not None and new_limit < coupon.usage_count:
        raise DomainValidationError("usage_limit cannot be lower than usage_count")

    for field, value in changes.items():
        if value is None and field not in ("description", "banner_text", "banner_color"):
            continue
        setattr(coupon, field, value)

    db.add(coupon)
    await flush_async(db, coupon)
    await refresh_async(db, coupon)
    return coupon


async def delete_coupon(db: AsyncSession, coupon_id: UUID) -> None:
    coupon = await get_coupon(db, coupon_id)
    await db.delete(coupon)
    await flush_async(db)


async def toggle_public(db: AsyncSession, coupon_id: UUID) -> Coupon:
    coupon = await get_coupon(db, coupon_id)
    coupon.is_public = not coupon.is_public
    db.add(coupon)
    await flush_async(db, coupon)
    await refresh_async(db, coupon)
    return coupon


async def deactivate_expired(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Turn off active coupons whose window has closed. Returns affected rows."""
    now = now or utcnow()
    result = await db.execute(
        update(Coupon)
        .where(Coupon.is_active.is_(True), Coupon.end_at < now)
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0
    if count:
        logger.info("Expired coupons deactivated", extra={"count": count})
    return count


async def coupon_stats(db: AsyncSession, now: Optional[datetime] = None) -> CouponStats:
    now = now or utcnow()

    async def _count(*conditions) -> int:
        stmt = select(func.count(Coupon.id))
        if conditions:
            stmt = stmt.where(*conditions)
        return int((await db.execute(stmt)).scalar_one())

    return CouponStats(
        total_coupons=await _count(),
        active_coupons=await _count(Coupon.is_active.is_(True), Coupon.end_at >= now),
        expired_coupons=await _count(Coupon.end_at < now),
        redeemed_coupons=await _count(Coupon.usage_count > 0),
        public_coupons=await _count(Coupon.is_public.is_(True)),
    )


# ---------------- Validation / redemption ----------------
async def validate_coupon(
    db: AsyncSession,
    code: str,
    subtotal,
    now: Optional[datetime] = None,
) -> CouponValidation:
    """Read-only check of ``code`` against a cart subtotal."""
    coupon = await get_by_code(db, code)
    validation = evaluate_coupon(coupon, subtotal, now or utcnow())
    record_coupon_validation(validation.reason.value if validation.reason else "valid")
    return validation


async def commit_coupon_redemption(db: AsyncSession, coupon_id: UUID) -> bool:
    """Atomically consume one use of the coupon.

    Returns False when no slot was left, including when a concurrent order took
    the last one between validation and this call.
    """
    result = await db.execute(
        update(Coupon)
        .where(Coupon.id == coupon_id, Coupon.usage_count < Coupon.usage_limit)
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    committed = result.rowcount == 1
    record_coupon_redemption("committed" if committed else "conflict")
    if not committed:
        logger.warning("Coupon redemption lost the usage race", extra={"coupon_id": str(coupon_id)})
    return committed
