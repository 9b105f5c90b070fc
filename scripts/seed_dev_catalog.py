"""Seed script for a development catalog with promotions and coupons."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Sequence

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from teestore.core.config import settings
from teestore.db.session_async import AsyncSessionLocal
from teestore.domain.enums import DiscountType, PromotionType
from teestore.models.catalog import Category, Product
from teestore.models.promotion import Promotion
from teestore.schemas.catalog import CategoryCreate, ProductCreate
from teestore.schemas.coupon import CouponCreate
from teestore.services import catalog_service, coupon_service, pricing_service


@dataclass(frozen=True, slots=True)
class CategorySeed:
    name: str
    slug: str
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ProductSeed:
    title: str
    slug: str
    price: float
    category_key: str | None = None
    description: str | None = None
    is_on_clearance: bool = False


@dataclass(frozen=True, slots=True)
class PromotionSeed:
    name: str
    discount_type: DiscountType
    discount_value: float
    promotion_type: PromotionType = PromotionType.store_wide
    category_keys: Sequence[str] = field(default_factory=tuple)
    priority: int = 0
    minimum_purchase: float | None = None
    days: int = 30


@dataclass(frozen=True, slots=True)
class CouponSeed:
    code: str
    discount_type: DiscountType
    discount_value: float
    usage_limit: int = 100
    minimum_purchase: float = 0
    is_public: bool = False
    banner_text: str | None = None


CATEGORIES: dict[str, CategorySeed] = {
    "graphic": CategorySeed(name="Graphic Tees", slug="graphic-tees", description="Estampas propias y de artistas."),
    "basics": CategorySeed(name="Basics", slug="basics", description="Remeras lisas de algodon organico."),
}

PRODUCTS: tuple[ProductSeed, ...] = (
    ProductSeed(title="Sunset Wave Tee", slug="sunset-wave-tee", price=39.95, category_key="graphic"),
    ProductSeed(title="Retro Robot Tee", slug="retro-robot-tee", price=42.00, category_key="graphic"),
    ProductSeed(title="Organic Crew Tee White", slug="organic-crew-tee-white", price=29.00, category_key="basics"),
    ProductSeed(title="Organic Crew Tee Black", slug="organic-crew-tee-black", price=29.00, category_key="basics"),
    ProductSeed(
        title="Last Season Tie Dye Tee",
        slug="last-season-tie-dye-tee",
        price=35.00,
        is_on_clearance=True,
    ),
)

PROMOTIONS: tuple[PromotionSeed, ...] = (
    PromotionSeed(
        name="Graphic Tees Week",
        discount_type=DiscountType.percentage,
        discount_value=20,
        promotion_type=PromotionType.category,
        category_keys=("graphic",),
        priority=10,
    ),
    PromotionSeed(
        name="Clearance Rack",
        discount_type=DiscountType.percentage,
        discount_value=40,
        promotion_type=PromotionType.clearance,
        priority=5,
    ),
    PromotionSeed(
        name="Spend 100 Save 10",
        discount_type=DiscountType.fixed_amount,
        discount_value=10,
        minimum_purchase=100,
    ),
)

COUPONS: tuple[CouponSeed, ...] = (
    CouponSeed(
        code="WELCOME10",
        discount_type=DiscountType.percentage,
        discount_value=10,
        is_public=True,
        banner_text="New here? Use WELCOME10 for 10% off",
    ),
    CouponSeed(code="SAVE15", discount_type=DiscountType.fixed_amount, discount_value=15, minimum_purchase=50, usage_limit=10),
)


async def _ensure_category(db, seed: CategorySeed) -> Category:
    existing = (await db.execute(select(Category).where(Category.slug == seed.slug))).scalars().first()
    if existing:
        return existing
    return await catalog_service.create_category(
        db, CategoryCreate(name=seed.name, slug=seed.slug, description=seed.description)
    )


async def _seed_catalog(db, logger: logging.Logger) -> tuple[dict[str, Category], int]:
    categories = {key: await _ensure_category(db, seed) for key, seed in CATEGORIES.items()}

    created = 0
    for seed in PRODUCTS:
        existing = (await db.execute(select(Product).where(Product.slug == seed.slug))).scalars().first()
        category = categories.get(seed.category_key) if seed.category_key else None
        if seed.category_key and category is None:
            logger.warning("Category key %s not found for product %s", seed.category_key, seed.title)
        if existing:
            existing.title = seed.title
            existing.price = seed.price
            existing.category_id = category.id if category else None
            existing.is_on_clearance = seed.is_on_clearance
            existing.active = True
            db.add(existing)
            continue
        await catalog_service.create_product(
            db,
            ProductCreate(
                title=seed.title,
                slug=seed.slug,
                description=seed.description,
                price=seed.price,
                category_id=category.id if category else None,
                is_on_clearance=seed.is_on_clearance,
            ),
        )
        created += 1
    return categories, created


async def _seed_promotions(db, categories: dict[str, Category], now: datetime) -> int:
    created = 0
    for seed in PROMOTIONS:
        existing = (await db.execute(select(Promotion).where(Promotion.name == seed.name))).scalars().first()
        if existing:
            continue
        db.add(
            Promotion(
                name=seed.name,
                discount_type=seed.discount_type,
                discount_value=seed.discount_value,
                start_at=now - timedelta(days=1),
                end_at=now + timedelta(days=seed.days),
                is_active=True,
                promotion_type=seed.promotion_type,
                applicable_categories=[str(categories[key].id) for key in seed.category_keys],
                applicable_products=[],
                minimum_purchase=seed.minimum_purchase,
                priority=seed.priority,
            )
        )
        created += 1
    await db.flush()
    return created


async def _seed_coupons(db, now: datetime) -> int:
    created = 0
    for seed in COUPONS:
        if await coupon_service.get_by_code(db, seed.code):
            continue
        await coupon_service.create_coupon(
            db,
            CouponCreate(
                code=seed.code,
                discount_type=seed.discount_type,
                discount_value=seed.discount_value,
                start_at=now - timedelta(days=1),
                end_at=now + timedelta(days=settings.COUPON_DEFAULT_VALIDITY_DAYS),
                usage_limit=seed.usage_limit,
                minimum_purchase=seed.minimum_purchase,
                is_public=seed.is_public,
                banner_text=seed.banner_text,
            ),
        )
        created += 1
    return created


async def seed_dev_catalog() -> None:
    logger = logging.getLogger("seed_dev_catalog")
    logger.info("Seeding development catalog into %s", settings.ASYNC_DATABASE_URL)
    now = datetime.now(timezone.utc)
    async with AsyncSessionLocal() as session:
        categories, products = await _seed_catalog(session, logger)
        promotions = await _seed_promotions(session, categories, now)
        coupons = await _seed_coupons(session, now)
        report = await pricing_service.refresh_price_cache(session, now=now)
        await session.commit()
    logger.info(
        "Seed completed: %s products, %s promotions, %s coupons created; %s prices cached",
        products,
        promotions,
        coupons,
        report.refreshed,
    )


async def main() -> None:
    await seed_dev_catalog()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
