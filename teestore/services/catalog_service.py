from __future__ import annotations

import re
import unicodedata
import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.core.config import settings
from teestore.db.operations import flush_async, refresh_async
from teestore.models.catalog import Category, Product
from teestore.schemas.catalog import CategoryCreate, ProductCreate, ProductUpdate
from teestore.services.exceptions import ConflictError, ResourceNotFoundError


# ---------------- Utils ----------------
def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text).strip("-")
    return text.lower()


async def _unique_slug(db: AsyncSession, model, base_text: str) -> str:
    base = slugify(base_text) or uuid.uuid4().hex[:8]
    candidate = base
    suffix = 2
    while (await db.execute(select(model.id).where(model.slug == candidate).limit(1))).scalar_one_or_none():
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


# ---------------- Categories ----------------
async def list_categories(db: AsyncSession, *, only_active: bool = True) -> Sequence[Category]:
    stmt = select(Category).order_by(Category.name)
    if only_active:
        stmt = stmt.where(Category.active.is_(True))
    result = await db.execute(stmt)
    return result.scalars().all()


async def create_category(db: AsyncSession, payload: CategoryCreate) -> Category:
    existing = await db.execute(select(Category.id).where(Category.name == payload.name).limit(1))
    if existing.scalar_one_or_none():
        raise ConflictError("Category name already exists")

    category = Category(
        name=payload.name,
        slug=await _unique_slug(db, Category, payload.slug or payload.name),
        description=payload.description,
        active=payload.active,
    )
    db.add(category)
    await flush_async(db, category)
    await refresh_async(db, category)
    return category


# ---------------- Products ----------------
async def get_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise ResourceNotFoundError("Product not found")
    return product


async def get_products(db: AsyncSession, product_ids: Sequence[uuid.UUID]) -> list[Product]:
    result = await db.execute(select(Product).where(Product.id.in_(list(product_ids))))
    return list(result.scalars().unique().all())


async def list_products(
    db: AsyncSession,
    *,
    category_id: uuid.UUID | None = None,
    only_active: bool = True,
    limit: int = 100,
    offset: int = 0,
) -> list[Product]:
    stmt = select(Product).order_by(Product.created_at.desc()).offset(offset).limit(limit)
    if only_active:
        stmt = stmt.where(Product.active.is_(True))
    if category_id:
        stmt = stmt.where(Product.category_id == category_id)
    result = await db.execute(stmt)
    return list(result.scalars().unique().all())


async def create_product(db: AsyncSession, payload: ProductCreate) -> Product:
    if payload.category_id and not await db.get(Category, payload.category_id):
        raise ResourceNotFoundError("Category not found")

    product = Product(
        title=payload.title,
        slug=await _unique_slug(db, Product, payload.slug or payload.title),
        description=payload.description,
        price=payload.price,
        currency=payload.currency or settings.DEFAULT_CURRENCY,
        category_id=payload.category_id,
        is_on_clearance=payload.is_on_clearance,
        active=payload.active,
    )
    db.add(product)
    await flush_async(db, product)
    await refresh_async(db, product)
    return product


async def update_product(db: AsyncSession, product: Product, payload: ProductUpdate) -> Product:
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category_id") and not await db.get(Category, changes["category_id"]):
        raise ResourceNotFoundError("Category not found")
    for field, value in changes.items():
        setattr(product, field, value)
    db.add(product)
    await flush_async(db, product)
    await refresh_async(db, product)
    return product
