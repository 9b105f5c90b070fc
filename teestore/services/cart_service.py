from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from teestore.core.config import settings
from teestore.core.logging import get_logger
from teestore.db.operations import flush_async
from teestore.domain.enums import CartStatus
from teestore.models.cart import Cart, CartItem
from teestore.models.catalog import Product
from teestore.schemas.cart import (
    CartCreate,
    CartItemCreate,
    CartItemUpdate,
    CheckoutQuoteRead,
    DiscountBreakdownItem,
    QuoteLine,
)
from teestore.services import catalog_service, coupon_service, pricing_service
from teestore.services.coupon_rules import CouponValidation, evaluate_coupon
from teestore.services.exceptions import (
    DiscountRejectedError,
    DomainValidationError,
    ResourceNotFoundError,
)
from teestore.services.pricing import ZERO, ProductPricingInput, resolve_many, to_money, utcnow

logger = get_logger(__name__)


@dataclass
class QuotedLine:
    product_id: uuid.UUID
    quantity: int
    original_unit_price: Decimal
    unit_price: Decimal
    promotion_id: Optional[uuid.UUID] = None

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @property
    def discount_total(self) -> Decimal:
        return to_money((self.original_unit_price - self.unit_price) * self.quantity)


@dataclass
class CheckoutQuote:
    """Authoritative prices for a cart at checkout time."""

    currency: str
    lines: list[QuotedLine]
    subtotal: Decimal
    promotion_discount: Decimal
    coupon_discount: Decimal
    final_total: Decimal
    breakdown: list[dict] = field(default_factory=list)
    coupon: Optional[CouponValidation] = None

    @property
    def promotion_ids(self) -> list[uuid.UUID]:
        seen: list[uuid.UUID] = []
        for line in self.lines:
            if line.promotion_id is not None and line.promotion_id not in seen:
                seen.append(line.promotion_id)
        return seen

    @property
    def applied_coupon_id(self) -> Optional[uuid.UUID]:
        if self.coupon is not None and self.coupon.valid:
            return self.coupon.coupon_id
        return None

    def to_schema(self) -> CheckoutQuoteRead:
        rejected = self.coupon is not None and not self.coupon.valid
        return CheckoutQuoteRead(
            currency=self.currency,
            lines=[
                QuoteLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    original_unit_price=float(line.original_unit_price),
                    unit_price=float(line.unit_price),
                    line_total=float(line.line_total),
                    promotion_id=line.promotion_id,
                )
                for line in self.lines
            ],
            subtotal=float(self.subtotal),
            promotion_discount=float(self.promotion_discount),
            coupon_discount=float(self.coupon_discount),
            final_total=float(self.final_total),
            discount_breakdown=[DiscountBreakdownItem(**entry) for entry in self.breakdown],
            applied_coupon_id=self.applied_coupon_id,
            coupon_error=self.coupon.reason if rejected else None,
            coupon_message=self.coupon.message if self.coupon is not None else None,
        )


# ---------------- Carga ----------------
async def _refresh_cart(db: AsyncSession, cart: Cart) -> None:
    await db.refresh(cart)
    await db.refresh(cart, attribute_names=["items"])


async def get_active_cart(db: AsyncSession, guest_token: str | None) -> Cart | None:
    if not guest_token:
        return None
    stmt = (
        select(Cart)
        .options(selectinload(Cart.items))
        .where(Cart.status == CartStatus.active, Cart.guest_token == guest_token)
        .order_by(Cart.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    cart = result.scalars().first()
    if cart:
        await _refresh_cart(db, cart)
    return cart


async def require_active_cart(db: AsyncSession, guest_token: str | None) -> Cart:
    cart = await get_active_cart(db, guest_token)
    if not cart:
        raise ResourceNotFoundError("Cart not found")
    return cart


async def create_cart(db: AsyncSession, payload: CartCreate) -> Cart:
    cart = Cart(
        guest_token=payload.guest_token or str(uuid.uuid4()),
        currency=payload.currency or settings.DEFAULT_CURRENCY,
        status=CartStatus.active,
        subtotal_amount=0,
        discount_amount=0,
        total_amount=0,
    )
    db.add(cart)
    await flush_async(db)
    await _refresh_cart(db, cart)
    return cart


# ---------------- Precios de visualización ----------------
async def _load_products(db: AsyncSession, cart: Cart) -> dict[uuid.UUID, Product]:
    products = await catalog_service.get_products(db, [item.product_id for item in cart.items])
    return {product.id: product for product in products}


async def _reprice(db: AsyncSession, cart: Cart, now: datetime) -> None:
    """Optimistic prices: promotion minimum purchases are ignored here."""
    if not cart.items:
        return
    products = await _load_products(db, cart)
    resolutions = await pricing_service.resolve_products(db, products.values(), now=now)
    for item in cart.items:
        resolution = resolutions[item.product_id]
        item.original_unit_price = resolution.original_price
        item.unit_price = resolution.final_price
        item.line_total = to_money(resolution.final_price * item.quantity)
        item.promotion_id = resolution.applied_promotion_id


async def _recompute_totals(db: AsyncSession, cart: Cart, now: datetime) -> None:
    subtotal = to_money(sum((Decimal(str(item.line_total)) for item in cart.items), ZERO))
    discount = ZERO
    if cart.coupon_code:
        coupon = await coupon_service.get_by_code(db, cart.coupon_code)
        validation = evaluate_coupon(coupon, subtotal, now)
        # un cupón que dejó de aplicar se conserva; el checkout informa el motivo
        if validation.valid:
            discount = validation.discount_amount
    cart.subtotal_amount = subtotal
    cart.discount_amount = discount
    cart.total_amount = to_money(subtotal - discount)


async def _save(db: AsyncSession, cart: Cart, now: datetime) -> Cart:
    await _reprice(db, cart, now)
    await _recompute_totals(db, cart, now)
    db.add(cart)
    await flush_async(db)
    await _refresh_cart(db, cart)
    return cart


def _get_item(cart: Cart, item_id: uuid.UUID) -> CartItem | None:
    for item in cart.items:
        if item.id == item_id:
            return item
    return None


async def add_item(db: AsyncSession, *, cart: Cart, item_payload: CartItemCreate) -> Cart:
    product = await catalog_service.get_product(db, item_payload.product_id)
    if not product.active:
        raise DomainValidationError("Product is not available")

    existing = next((item for item in cart.items if item.product_id == product.id), None)
    if existing:
        existing.quantity += item_payload.quantity
    else:
        price = to_money(product.price)
        cart.items.append(
            CartItem(
                product_id=product.id,
                quantity=item_payload.quantity,
                original_unit_price=price,
                unit_price=price,
                line_total=to_money(price * item_payload.quantity),
            )
        )
    return await _save(db, cart, utcnow())


async def update_item(db: AsyncSession, *, cart: Cart, item_id: uuid.UUID, payload: CartItemUpdate) -> Cart:
    item = _get_item(cart, item_id)
    if not item:
        raise ResourceNotFoundError("Cart item not found")
    item.quantity = payload.quantity
    return await _save(db, cart, utcnow())


async def remove_item(db: AsyncSession, *, cart: Cart, item_id: uuid.UUID) -> Cart:
    item = _get_item(cart, item_id)
    if not item:
        raise ResourceNotFoundError("Cart item not found")
    cart.items.remove(item)
    await flush_async(db)
    return await _save(db, cart, utcnow())


# ---------------- Cupón ----------------
async def apply_coupon(db: AsyncSession, *, cart: Cart, code: str) -> Cart:
    now = utcnow()
    await _reprice(db, cart, now)
    subtotal = to_money(sum((Decimal(str(item.line_total)) for item in cart.items), ZERO))
    validation = await coupon_service.validate_coupon(db, code, subtotal, now)
    if not validation.valid:
        raise DiscountRejectedError(validation.reason, validation.message, validation.shortfall)

    cart.coupon_code = validation.code
    return await _save(db, cart, now)


async def remove_coupon(db: AsyncSession, *, cart: Cart) -> Cart:
    cart.coupon_code = None
    return await _save(db, cart, utcnow())


# ---------------- Checkout ----------------
async def quote_checkout(
    db: AsyncSession,
    cart: Cart,
    *,
    coupon_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CheckoutQuote:
    """Re-price the cart against its real contents.

    Promotions are resolved with the pre-discount subtotal, so those whose
    minimum purchase is not met are dropped. The coupon is then checked against
    what is left after promotions.
    """
    now = now or utcnow()
    products = await _load_products(db, cart)
    missing = [item.product_id for item in cart.items if item.product_id not in products]
    if missing:
        raise ResourceNotFoundError("Product not found")
    if any(not products[item.product_id].active for item in cart.items):
        raise DomainValidationError("Cart contains products that are no longer available")

    base_subtotal = to_money(
        sum((to_money(products[item.product_id].price) * item.quantity for item in cart.items), ZERO)
    )
    promotions = await pricing_service.load_active_promotions(db)
    resolutions = resolve_many(
        [ProductPricingInput.from_product(products[item.product_id]) for item in cart.items],
        promotions,
        now,
        cart_subtotal=base_subtotal,
    )

    lines = [
        QuotedLine(
            product_id=item.product_id,
            quantity=item.quantity,
            original_unit_price=resolutions[item.product_id].original_price,
            unit_price=resolutions[item.product_id].final_price,
            promotion_id=resolutions[item.product_id].applied_promotion_id,
        )
        for item in cart.items
    ]
    promotion_discount = to_money(sum((line.discount_total for line in lines), ZERO))
    merchandise_total = to_money(base_subtotal - promotion_discount)

    promotion_names = {promo.id: promo.name for promo in promotions}
    breakdown: list[dict] = []
    for promotion_id in dict.fromkeys(line.promotion_id for line in lines if line.promotion_id):
        amount = sum((line.discount_total for line in lines if line.promotion_id == promotion_id), ZERO)
        breakdown.append(
            {
                "source": "promotion",
                "source_id": promotion_id,
                "label": promotion_names.get(promotion_id, "Promotion"),
                "amount": float(to_money(amount)),
            }
        )

    code = coupon_code or cart.coupon_code
    validation = None
    coupon_discount = ZERO
    if code:
        validation = await coupon_service.validate_coupon(db, code, merchandise_total, now)
        if validation.valid:
            coupon_discount = validation.discount_amount
            breakdown.append(
                {
                    "source": "coupon",
                    "source_id": validation.coupon_id,
                    "label": f"Coupon {validation.code}",
                    "amount": float(coupon_discount),
                }
            )

    return CheckoutQuote(
        currency=cart.currency,
        lines=lines,
        subtotal=base_subtotal,
        promotion_discount=promotion_discount,
        coupon_discount=coupon_discount,
        final_total=to_money(merchandise_total - coupon_discount),
        breakdown=breakdown,
        coupon=validation,
    )


async def convert_cart(db: AsyncSession, cart: Cart, quote: CheckoutQuote) -> None:
    cart.status = CartStatus.converted
    cart.subtotal_amount = to_money(quote.subtotal - quote.promotion_discount)
    cart.discount_amount = quote.coupon_discount
    cart.total_amount = quote.final_total
    cart.coupon_code = quote.coupon.code if quote.applied_coupon_id else None
    db.add(cart)
    await flush_async(db)
