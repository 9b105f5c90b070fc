"""Read-only coupon validation.

Checks run in a fixed order and the first failing one is reported. Nothing in
here touches ``usage_count``; redemption lives in ``coupon_service``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from teestore.core.config import settings
from teestore.domain.enums import CouponFailureReason
from teestore.services.pricing import ZERO, apply_discount, as_aware, to_money

_MESSAGES = {
    CouponFailureReason.input_invalid: "Cart subtotal must be greater than zero",
    # mismo mensaje para cualquier código desconocido
    CouponFailureReason.not_found: "Invalid coupon code",
    CouponFailureReason.inactive: "This coupon is no longer active",
    CouponFailureReason.expired: "This coupon has expired",
    CouponFailureReason.not_yet_started: "This coupon is not valid yet",
    CouponFailureReason.usage_limit_reached: "This coupon has reached its usage limit",
}


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def failure_message(reason: CouponFailureReason, shortfall: Optional[Decimal] = None) -> str:
    if reason == CouponFailureReason.minimum_purchase_not_met:
        return f"Add {settings.CURRENCY_SYMBOL}{shortfall or ZERO:.2f} more to your cart to use this coupon"
    return _MESSAGES[reason]


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    reason: Optional[CouponFailureReason] = None
    message: str = ""
    coupon_id: Optional[UUID] = None
    code: Optional[str] = None
    subtotal: Optional[Decimal] = None
    discount_amount: Decimal = Decimal("0.00")
    new_total: Optional[Decimal] = None
    shortfall: Optional[Decimal] = None

    @classmethod
    def rejected(
        cls,
        reason: CouponFailureReason,
        *,
        coupon: Any = None,
        subtotal: Optional[Decimal] = None,
        shortfall: Optional[Decimal] = None,
    ) -> "CouponValidation":
        # en not_found no se devuelve nada del cupón
        exposed = coupon if reason != CouponFailureReason.not_found else None
        return cls(
            valid=False,
            reason=reason,
            message=failure_message(reason, shortfall),
            coupon_id=exposed.id if exposed is not None else None,
            code=exposed.code if exposed is not None else None,
            subtotal=subtotal,
            new_total=subtotal,
            shortfall=shortfall,
        )


def availability_failure(coupon: Any, now: datetime) -> Optional[CouponFailureReason]:
    """Checks 1-3: active flag, date window, remaining usage."""
    if not coupon.is_active:
        return CouponFailureReason.inactive
    current = as_aware(now)
    if current < as_aware(coupon.start_at):
        return CouponFailureReason.not_yet_started
    if current > as_aware(coupon.end_at):
        return CouponFailureReason.expired
    if (coupon.usage_count or 0) >= coupon.usage_limit:
        return CouponFailureReason.usage_limit_reached
    return None


def is_publicly_listed(coupon: Any, now: datetime) -> bool:
    # el mínimo de compra se ignora: el carrito todavía no existe
    return bool(coupon.is_public) and availability_failure(coupon, now) is None


def coupon_discount(subtotal: Decimal, coupon: Any) -> Decimal:
    """Cart-level discount, never larger than the subtotal."""
    discounted = apply_discount(subtotal, coupon.discount_type, coupon.discount_value)
    return to_money(subtotal - discounted)


def evaluate_coupon(coupon: Any, subtotal: Any, now: datetime) -> CouponValidation:
    """Validate an already looked-up coupon (``None`` when the code is unknown)."""
    if coupon is None:
        return CouponValidation.rejected(CouponFailureReason.not_found)

    amount = to_money(subtotal) if subtotal is not None else None
    if amount is None or amount <= ZERO:
        return CouponValidation.rejected(CouponFailureReason.input_invalid, coupon=coupon, subtotal=amount)

    reason = availability_failure(coupon, now)
    if reason is not None:
        return CouponValidation.rejected(reason, coupon=coupon, subtotal=amount)

    minimum = to_money(coupon.minimum_purchase or 0)
    if amount < minimum:
        return CouponValidation.rejected(
            CouponFailureReason.minimum_purchase_not_met,
            coupon=coupon,
            subtotal=amount,
            shortfall=to_money(minimum - amount),
        )

    discount = coupon_discount(amount, coupon)
    return CouponValidation(
        valid=True,
        message="Coupon applied",
        coupon_id=coupon.id,
        code=coupon.code,
        subtotal=amount,
        discount_amount=discount,
        new_total=to_money(amount - discount),
    )
