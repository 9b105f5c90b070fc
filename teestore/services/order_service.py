from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teestore.core.logging import get_logger
from teestore.db.operations import flush_async
from teestore.domain.enums import CouponFailureReason, OrderStatus
from teestore.models.order import Order, OrderLine
from teestore.schemas.order import CheckoutPayload
from teestore.services import cart_service, coupon_service, promotion_service
from teestore.services.coupon_rules import failure_message
from teestore.services.exceptions import (
    DiscountRejectedError,
    DomainValidationError,
    ResourceNotFoundError,
)
from teestore.services.pricing import utcnow

logger = get_logger(__name__)


async def _load_order_eager(db: AsyncSession, order: Order) -> None:
    await db.refresh(order)
    await db.refresh(order, attribute_names=["lines"])


async def get_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    order = await db.get(Order, order_id, options=[selectinload(Order.lines)])
    if not order:
        raise ResourceNotFoundError("Order not found")
    return order


def _usage_rejected(detail: str) -> DiscountRejectedError:
    return DiscountRejectedError(CouponFailureReason.usage_limit_reached, detail)


async def checkout(db: AsyncSession, payload: CheckoutPayload, *, now: Optional[datetime] = None) -> Order:
    """Place an order from the guest cart.

    Usage counters are consumed here and nowhere else. Any rejection raises, and
    the caller rolls the whole transaction back, so no order exists without its
    discounts having been granted.
    """
    now = now or utcnow()
    cart = await cart_service.require_active_cart(db, payload.guest_token)
    if not cart.items:
        raise DomainValidationError("Cart is empty")

    quote = await cart_service.quote_checkout(db, cart, coupon_code=payload.coupon_code, now=now)
    if quote.coupon is not None and not quote.coupon.valid:
        raise DiscountRejectedError(quote.coupon.reason, quote.coupon.message, quote.coupon.shortfall)

    for promotion_id in quote.promotion_ids:
        if not await promotion_service.commit_promotion_usage(db, promotion_id):
            raise _usage_rejected("A promotion in your cart has reached its usage limit")

    coupon_id = quote.applied_coupon_id
    if coupon_id is not None and not await coupon_service.commit_coupon_redemption(db, coupon_id):
        raise _usage_rejected(failure_message(CouponFailureReason.usage_limit_reached))

    order = Order(
        cart_id=cart.id,
        guest_token=cart.guest_token,
        currency=quote.currency,
        status=OrderStatus.pending_payment,
        subtotal_amount=quote.subtotal,
        promotion_discount_amount=quote.promotion_discount,
        coupon_discount_amount=quote.coupon_discount,
        discount_amount=quote.promotion_discount + quote.coupon_discount,
        total_amount=quote.final_total,
        coupon_id=coupon_id,
        coupon_code=quote.coupon.code if coupon_id else None,
        # JSON: los UUID se guardan como texto
        discount_breakdown=[{**entry, "source_id": str(entry["source_id"])} for entry in quote.breakdown],
    )
    for line in quote.lines:
        order.lines.append(
            OrderLine(
                product_id=line.product_id,
                quantity=line.quantity,
                original_unit_price=line.original_unit_price,
                unit_price=line.unit_price,
                line_total=line.line_total,
                promotion_id=line.promotion_id,
            )
        )
    db.add(order)
    await cart_service.convert_cart(db, cart, quote)
    await flush_async(db)
    await _load_order_eager(db, order)

    logger.info(
        "Order placed",
        extra={
            "order_id": str(order.id),
            "total": str(quote.final_total),
            "coupon_id": str(coupon_id) if coupon_id else None,
            "promotions": [str(pid) for pid in quote.promotion_ids],
        },
    )
    return order
