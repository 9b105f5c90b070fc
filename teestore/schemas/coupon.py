from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from teestore.domain.enums import CouponFailureReason, DiscountType


def _coerce_discount_type(value: Any) -> Any:
    # "fixed" se acepta como alias de fixed_amount
    if isinstance(value, str) and value.strip().lower() == "fixed":
        return DiscountType.fixed_amount
    return value


class _CouponTerms(BaseModel):
    description: Optional[str] = None
    discount_type: DiscountType = DiscountType.percentage
    discount_value: float = Field(default=10, gt=0)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    usage_limit: int = Field(default=1, gt=0)
    minimum_purchase: float = Field(default=0, ge=0)
    is_public: bool = False
    banner_text: Optional[str] = Field(default=None, max_length=255)
    banner_color: Optional[str] = Field(default=None, max_length=16)

    @field_validator("discount_type", mode="before")
    @classmethod
    def accept_fixed_alias(cls, value: Any) -> Any:
        return _coerce_discount_type(value)

    @model_validator(mode="after")
    def check_terms(self):
        if self.discount_type == DiscountType.percentage and self.discount_value > 100:
            raise ValueError("percentage discounts cannot exceed 100")
        if self.start_at and self.end_at and self.start_at >= self.end_at:
            raise ValueError("start_at must be before end_at")
        return self


class CouponCreate(_CouponTerms):
    code: str = Field(..., min_length=3, max_length=64)
    is_active: bool = True


class CouponGenerate(_CouponTerms):
    code_prefix: Optional[str] = Field(default=None, max_length=20)


class CouponBulkGenerate(CouponGenerate):
    count: int = Field(default=5, ge=1)


class CouponUpdate(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(default=None, gt=0)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    usage_limit: Optional[int] = Field(default=None, gt=0)
    minimum_purchase: Optional[float] = Field(default=None, ge=0)
    is_public: Optional[bool] = None
    banner_text: Optional[str] = Field(default=None, max_length=255)
    banner_color: Optional[str] = Field(default=None, max_length=16)

    @field_validator("discount_type", mode="before")
    @classmethod
    def accept_fixed_alias(cls, value: Any) -> Any:
        return _coerce_discount_type(value)


class CouponRead(BaseModel):
    id: UUID
    code: str
    description: Optional[str]
    discount_type: DiscountType
    discount_value: float
    start_at: datetime
    end_at: datetime
    is_active: bool
    usage_limit: int
    usage_count: int
    minimum_purchase: float
    is_public: bool
    banner_text: Optional[str]
    banner_color: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CouponPublicRead(BaseModel):
    id: UUID
    code: str
    discount_type: DiscountType
    discount_value: float
    banner_text: Optional[str]
    banner_color: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class CouponValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    subtotal: float


class CouponValidationRead(BaseModel):
    valid: bool
    reason: Optional[CouponFailureReason]
    message: str
    coupon_id: Optional[UUID]
    code: Optional[str]
    subtotal: Optional[float]
    discount_amount: float
    new_total: Optional[float]
    shortfall: Optional[float]

    model_config = ConfigDict(from_attributes=True)


class CouponStats(BaseModel):
    total_coupons: int
    active_coupons: int
    expired_coupons: int
    redeemed_coupons: int
    public_coupons: int


class DeactivateExpiredResponse(BaseModel):
    deactivated: int
