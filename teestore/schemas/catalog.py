# teestore/schemas/catalog.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ---------- Category ----------
class CategoryBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str | None = Field(None, min_length=2, max_length=120)
    description: str | None = Field(None, max_length=500)
    active: bool = True


class CategoryCreate(CategoryBase):
    pass


class CategoryRead(CategoryBase):
    id: UUID
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ---------- Product ----------
class ProductCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    slug: str | None = Field(None, min_length=2, max_length=220)
    description: str | None = None
    price: float = Field(..., gt=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    category_id: UUID | None = None
    is_on_clearance: bool = False
    active: bool = True


class ProductUpdate(BaseModel):
    title: str | None = Field(None, min_length=2, max_length=200)
    description: str | None = None
    price: float | None = Field(None, gt=0)
    category_id: UUID | None = None
    is_on_clearance: bool | None = None
    active: bool | None = None


class ProductRead(BaseModel):
    id: UUID
    title: str
    slug: str
    description: str | None
    price: float
    currency: str
    category_id: UUID | None
    is_on_clearance: bool
    promotion_id: UUID | None
    cached_final_price: float | None
    cached_discount_percentage: int | None
    cached_promotion_id: UUID | None
    active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- Pricing ----------
class ProductPriceRead(BaseModel):
    """Resolver output as consumed by the storefront."""

    product_id: UUID
    has_discount: bool
    original_price: float
    final_price: float
    discount_percentage: int
    applied_promotion_id: UUID | None
    badge_text: str | None
    is_on_clearance: bool

    model_config = ConfigDict(from_attributes=True)


class ProductPriceBatchRequest(BaseModel):
    product_ids: list[UUID] = Field(..., min_length=1, max_length=200)


class ProductOnSaleRead(BaseModel):
    product: ProductRead
    pricing: ProductPriceRead
