from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from teestore.domain.enums import OrderStatus


class CheckoutPayload(BaseModel):
    guest_token: str = Field(..., min_length=1, max_length=120)
    # permite fijar el cupón en el mismo paso del checkout
    coupon_code: Optional[str] = Field(default=None, max_length=64)


class OrderLineRead(BaseModel):
    id: UUID
    product_id: UUID
    quantity: int
    original_unit_price: float
    unit_price: float
    line_total: float
    promotion_id: UUID | None

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: UUID
    guest_token: str | None
    status: OrderStatus
    currency: str
    subtotal_amount: float
    promotion_discount_amount: float
    coupon_discount_amount: float
    discount_amount: float
    total_amount: float
    coupon_id: UUID | None
    coupon_code: str | None
    discount_breakdown: list[dict] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None
    lines: List[OrderLineRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
