from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.core.logging import consistency_alert, get_logger
from teestore.db.operations import flush_async
from teestore.models.catalog import Product
from teestore.models.promotion import Promotion
from teestore.schemas.promotion import PriceCacheIssue, PriceCacheReport
from teestore.services.pricing import (
    PriceResolution,
    ProductPricingInput,
    as_aware,
    has_usage_available,
    is_within_window,
    promotion_matches,
    resolve_many,
    resolve_price,
    utcnow,
)

logger = get_logger(__name__)


async def load_active_promotions(db: AsyncSession) -> list[Promotion]:
    """Promotions flagged active; the resolver applies the date and usage filters."""
    result = await db.execute(select(Promotion).where(Promotion.is_active.is_(True)))
    return list(result.scalars().all())


async def list_current_promotions(db: AsyncSession, now: Optional[datetime] = None) -> list[Promotion]:
    now = now or utcnow()
    promotions = await load_active_promotions(db)
    current = [
        promo
        for promo in promotions
        if is_within_window(promo.start_at, promo.end_at, now) and has_usage_available(promo)
    ]
    current.sort(key=lambda promo: (-(promo.priority or 0), as_aware(promo.start_at)))
    return current


async def resolve_product(
    db: AsyncSession,
    product: Product,
    *,
    now: Optional[datetime] = None,
    promotions: Optional[Sequence[Promotion]] = None,
) -> PriceResolution:
    if promotions is None:
        promotions = await load_active_promotions(db)
    return resolve_price(ProductPricingInput.from_product(product), promotions, now or utcnow())


async def resolve_products(
    db: AsyncSession,
    products: Iterable[Product],
    *,
    now: Optional[datetime] = None,
) -> dict[UUID, PriceResolution]:
    promotions = await load_active_promotions(db)
    inputs = [ProductPricingInput.from_product(product) for product in products]
    return resolve_many(inputs, promotions, now or utcnow())


def _explain_missing_discount(promotion: Optional[Promotion], product: Product, now: datetime) -> str:
    if promotion is None:
        return "linked promotion does not exist"
    if not promotion.is_active:
        return "linked promotion is inactive"
    if not is_within_window(promotion.start_at, promotion.end_at, now):
        return "linked promotion is outside its date window"
    if not has_usage_available(promotion):
        return "linked promotion reached its usage limit"
    if not promotion_matches(promotion, ProductPricingInput.from_product(product)):
        return "linked promotion does not target this product"
    return "linked promotion yields no discount"


async def refresh_price_cache(
    db: AsyncSession,
    product_ids: Optional[Sequence[UUID]] = None,
    *,
    now: Optional[datetime] = None,
) -> PriceCacheReport:
    """Recompute the advisory price cache stored on products.

    A product linked to a promotion that ends up without any discount is a
    data-consistency problem: it is reported, never patched with a guessed price.
    """
    now = now or utcnow()
    stmt = select(Product)
    if product_ids:
        stmt = stmt.where(Product.id.in_(list(product_ids)))
    products = list((await db.execute(stmt)).scalars().unique().all())

    promotions = await load_active_promotions(db)
    by_id = {promo.id: promo for promo in promotions}
    resolutions = resolve_many(
        [ProductPricingInput.from_product(product) for product in products], promotions, now
    )

    issues: list[PriceCacheIssue] = []
    discounted = 0
    for product in products:
        resolution = resolutions[product.id]
        for field, value in resolution.as_cache().items():
            setattr(product, field, value)
        product.price_cached_at = now
        if resolution.has_discount:
            discounted += 1
            continue
        if product.promotion_id is not None:
            linked = by_id.get(product.promotion_id) or await db.get(Promotion, product.promotion_id)
            detail = _explain_missing_discount(linked, product, now)
            consistency_alert(
                "Product linked to a promotion resolves without discount",
                product_id=str(product.id),
                promotion_id=str(product.promotion_id),
                reason=detail,
            )
            issues.append(
                PriceCacheIssue(
                    product_id=product.id,
                    expected_promotion_id=product.promotion_id,
                    detail=detail,
                )
            )

    await flush_async(db)
    logger.info(
        "Price cache refreshed",
        extra={"refreshed": len(products), "discounted": discounted, "issues": len(issues)},
    )
    return PriceCacheReport(refreshed=len(products), discounted=discounted, issues=issues)
