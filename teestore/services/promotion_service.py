from __future__ import annotations

from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.core.logging import get_logger
from teestore.db.operations import flush_async, refresh_async
from teestore.models.promotion import Promotion
from teestore.schemas.promotion import (
    ClearancePayload,
    PriceCacheReport,
    PromotionCreate,
    PromotionUpdate,
)
from teestore.services import catalog_service, pricing_service
from teestore.services.exceptions import DomainValidationError, ResourceNotFoundError
from teestore.services.pricing import PriceResolution, ProductPricingInput, as_aware, resolve_price, utcnow

logger = get_logger(__name__)

_NULLABLE_FIELDS = {"description", "minimum_purchase", "usage_limit", "highlight_color"}


def _ids(values: Sequence[UUID] | None) -> list[str]:
    return [str(value) for value in (values or [])]


async def create_promotion(db: AsyncSession, payload: PromotionCreate) -> Promotion:
    promotion = Promotion(
        name=payload.name,
        description=payload.description,
        discount_type=payload.discount_type,
        discount_value=payload.discount_value,
        start_at=payload.start_at,
        end_at=payload.end_at,
        is_active=payload.is_active,
        promotion_type=payload.promotion_type,
        applicable_categories=_ids(payload.applicable_categories),
        applicable_products=_ids(payload.applicable_products),
        minimum_purchase=payload.minimum_purchase,
        usage_limit=payload.usage_limit,
        current_usage=0,
        priority=payload.priority,
        highlight_color=payload.highlight_color,
    )
    db.add(promotion)
    await flush_async(db, promotion)
    await pricing_service.refresh_price_cache(db)
    await refresh_async(db, promotion)
    logger.info("Promotion created", extra={"promotion_id": str(promotion.id), "type": promotion.promotion_type.value})
    return promotion


async def list_promotions(db: AsyncSession, active: Optional[bool] = None) -> Sequence[Promotion]:
    stmt = select(Promotion)
    if active is not None:
        stmt = stmt.where(Promotion.is_active.is_(active))
    result = await db.execute(stmt.order_by(Promotion.priority.desc(), Promotion.start_at.desc()))
    return result.scalars().all()


async def get_promotion(db: AsyncSession, promotion_id: UUID) -> Promotion:
    promotion = await db.get(Promotion, promotion_id)
    if not promotion:
        raise ResourceNotFoundError("Promotion not found")
    return promotion


async def update_promotion(db: AsyncSession, promotion_id: UUID, payload: PromotionUpdate) -> Promotion:
    promotion = await get_promotion(db, promotion_id)
    changes = payload.model_dump(exclude_unset=True)

    start_at = changes.get("start_at") or promotion.start_at
    end_at = changes.get("end_at") or promotion.end_at
    if as_aware(start_at) >= as_aware(end_at):
        raise DomainValidationError("start_at must be before end_at")
    limit = changes.get("usage_limit", promotion.usage_limit)
    if limit is not None and limit < (promotion.current_usage or 0):
        raise DomainValidationError("usage_limit cannot be lower than current usage")

    for field in ("applicable_categories", "applicable_products"):
        if field in changes:
            changes[field] = _ids(changes[field])
    for field, value in changes.items():
        if value is None and field not in _NULLABLE_FIELDS:
            continue
        setattr(promotion, field, value)

    db.add(promotion)
    await flush_async(db, promotion)
    await pricing_service.refresh_price_cache(db)
    await refresh_async(db, promotion)
    return promotion


async def set_active(db: AsyncSession, promotion_id: UUID, is_active: bool) -> Promotion:
    promotion = await get_promotion(db, promotion_id)
    promotion.is_active = is_active
    db.add(promotion)
    await flush_async(db, promotion)
    await pricing_service.refresh_price_cache(db)
    await refresh_async(db, promotion)
    logger.info(
        "Promotion %s", "activated" if is_active else "deactivated",
        extra={"promotion_id": str(promotion.id)},
    )
    return promotion


async def apply_to_products(db: AsyncSession, promotion_id: UUID, product_ids: Sequence[UUID]) -> Promotion:
    """Target products explicitly and link them to the promotion."""
    promotion = await get_promotion(db, promotion_id)
    products = await catalog_service.get_products(db, product_ids)
    if len(products) != len(set(product_ids)):
        raise ResourceNotFoundError("One or more products not found")

    targeted = list(promotion.applicable_products or [])
    for product in products:
        if str(product.id) not in targeted:
            targeted.append(str(product.id))
        product.promotion_id = promotion.id
    # se reasigna la lista para que el cambio del JSON quede registrado
    promotion.applicable_products = targeted

    db.add(promotion)
    await flush_async(db)
    await pricing_service.refresh_price_cache(db, [product.id for product in products])
    await refresh_async(db, promotion)
    return promotion


async def mark_clearance(db: AsyncSession, payload: ClearancePayload) -> PriceCacheReport:
    products = await catalog_service.get_products(db, payload.product_ids)
    if len(products) != len(set(payload.product_ids)):
        raise ResourceNotFoundError("One or more products not found")

    promotion = None
    if payload.promotion_id is not None:
        promotion = await get_promotion(db, payload.promotion_id)

    for product in products:
        product.is_on_clearance = True
        if promotion is not None:
            product.promotion_id = promotion.id
    await flush_async(db)
    return await pricing_service.refresh_price_cache(db, [product.id for product in products])


async def preview_price(db: AsyncSession, promotion_id: UUID, product_id: UUID) -> PriceResolution:
    """Price the product would get if only this promotion existed."""
    promotion = await get_promotion(db, promotion_id)
    product = await catalog_service.get_product(db, product_id)
    return resolve_price(ProductPricingInput.from_product(product), [promotion], utcnow())


async def commit_promotion_usage(db: AsyncSession, promotion_id: UUID) -> bool:
    """Atomically take one usage slot; False when the limit is already reached."""
    stmt = (
        update(Promotion)
        .where(Promotion.id == promotion_id)
        .where(or_(Promotion.usage_limit.is_(None), Promotion.current_usage < Promotion.usage_limit))
        .values(current_usage=Promotion.current_usage + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    committed = result.rowcount == 1
    if not committed:
        logger.warning("Promotion usage commit rejected", extra={"promotion_id": str(promotion_id)})
    return committed

