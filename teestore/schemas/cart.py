# teestore/schemas/cart.py
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from teestore.domain.enums import CartStatus, CouponFailureReason


class CartItemCreate(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., gt=0)


class CartCreate(BaseModel):
    guest_token: Optional[str] = Field(default=None, max_length=120)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class CartCouponPayload(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class CartItemRead(BaseModel):
    id: UUID
    product_id: UUID
    quantity: int
    original_unit_price: float
    unit_price: float
    line_total: float
    promotion_id: UUID | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CartRead(BaseModel):
    id: UUID
    guest_token: str
    status: CartStatus
    currency: str

    subtotal_amount: float
    discount_amount: float
    total_amount: float
    coupon_code: str | None

    created_at: datetime
    updated_at: datetime | None

    items: List[CartItemRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class DiscountBreakdownItem(BaseModel):
    source: Literal["promotion", "coupon"]
    source_id: UUID
    label: str
    amount: float


class QuoteLine(BaseModel):
    product_id: UUID
    quantity: int
    original_unit_price: float
    unit_price: float
    line_total: float
    promotion_id: UUID | None


class CheckoutQuoteRead(BaseModel):
    currency: str
    lines: List[QuoteLine] = Field(default_factory=list)
    subtotal: float
    promotion_discount: float
    coupon_discount: float
    final_total: float
    discount_breakdown: List[DiscountBreakdownItem] = Field(default_factory=list)
    applied_coupon_id: UUID | None = None
    coupon_error: Optional[CouponFailureReason] = None
    coupon_message: Optional[str] = None
