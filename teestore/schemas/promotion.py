from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from teestore.domain.enums import DiscountType, PromotionType


class PromotionCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=180)
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.percentage
    discount_value: float = Field(..., gt=0)
    start_at: datetime
    end_at: datetime
    is_active: bool = False
    promotion_type: PromotionType = PromotionType.store_wide
    applicable_categories: list[UUID] = Field(default_factory=list)
    applicable_products: list[UUID] = Field(default_factory=list)
    minimum_purchase: Optional[float] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, gt=0)
    priority: int = 0
    highlight_color: Optional[str] = Field(default=None, max_length=16)

    @model_validator(mode="after")
    def check_window(self) -> "PromotionCreate":
        if self.start_at >= self.end_at:
            raise ValueError("start_at must be before end_at")
        return self


class PromotionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=180)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(default=None, gt=0)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    promotion_type: Optional[PromotionType] = None
    applicable_categories: Optional[list[UUID]] = None
    applicable_products: Optional[list[UUID]] = None
    minimum_purchase: Optional[float] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, gt=0)
    priority: Optional[int] = None
    highlight_color: Optional[str] = Field(default=None, max_length=16)


class PromotionRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    discount_type: DiscountType
    discount_value: float
    start_at: datetime
    end_at: datetime
    is_active: bool
    promotion_type: PromotionType
    applicable_categories: list[str]
    applicable_products: list[str]
    minimum_purchase: Optional[float]
    usage_limit: Optional[int]
    current_usage: int
    priority: int
    highlight_color: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PromotionProductsPayload(BaseModel):
    product_ids: list[UUID] = Field(..., min_length=1)


class ClearancePayload(BaseModel):
    product_ids: list[UUID] = Field(..., min_length=1)
    promotion_id: Optional[UUID] = None


class PriceCacheIssue(BaseModel):
    product_id: UUID
    expected_promotion_id: UUID
    detail: str


class PriceCacheReport(BaseModel):
    refreshed: int
    discounted: int
    issues: list[PriceCacheIssue] = Field(default_factory=list)
