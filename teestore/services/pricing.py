"""Discount resolution for product prices.

Every caller that shows or charges a product price (storefront display, cart,
checkout, admin preview and the price cache) goes through :func:`resolve_price`.
Only one promotion ever applies to a product; promotions are never stacked.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Sequence
from uuid import UUID

from teestore.core.config import settings
from teestore.core.logging import get_logger
from teestore.core.metrics import record_price_resolution
from teestore.domain.enums import DiscountType, PromotionType

logger = get_logger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def to_money(value: Any) -> Decimal:
    """Round a monetary amount to cents using half-up rounding."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def as_aware(value: datetime) -> datetime:
    # SQLite devuelve datetimes naive aunque la columna tenga timezone=True
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_within_window(start_at: datetime, end_at: datetime, now: datetime) -> bool:
    return as_aware(start_at) <= as_aware(now) <= as_aware(end_at)


def apply_discount(base_price: Any, discount_type: DiscountType, discount_value: Any) -> Decimal:
    """Price after discount, clamped at zero and rounded to cents."""
    base = Decimal(str(base_price))
    value = Decimal(str(discount_value))
    if DiscountType(discount_type) == DiscountType.percentage:
        discounted = base * (Decimal(1) - value / HUNDRED)
    else:
        discounted = base - value
    return to_money(max(ZERO, discounted))


def effective_percentage(original: Decimal, final: Decimal) -> int:
    if original <= ZERO:
        return 0
    ratio = (Decimal(1) - final / original) * HUNDRED
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ProductPricingInput:
    """The catalog fields the resolver reads. Never mutated here."""

    id: UUID
    base_price: Decimal
    category_id: Optional[UUID] = None
    is_on_clearance: bool = False
    promotion_id: Optional[UUID] = None

    @classmethod
    def from_product(cls, product: Any) -> "ProductPricingInput":
        price = product.price if product.price is not None else ZERO
        return cls(
            id=product.id,
            base_price=Decimal(str(price)),
            category_id=product.category_id,
            is_on_clearance=bool(product.is_on_clearance),
            promotion_id=product.promotion_id,
        )


@dataclass(frozen=True)
class PriceResolution:
    product_id: UUID
    has_discount: bool
    original_price: Decimal
    final_price: Decimal
    discount_percentage: int = 0
    applied_promotion_id: Optional[UUID] = None
    badge_text: Optional[str] = None
    is_on_clearance: bool = False

    @property
    def discount_amount(self) -> Decimal:
        return to_money(self.original_price - self.final_price)

    def as_cache(self) -> dict[str, Any]:
        """Fields the catalog may persist for fast read paths."""
        return {
            "cached_final_price": self.final_price,
            "cached_discount_percentage": self.discount_percentage,
            "cached_promotion_id": self.applied_promotion_id,
        }


def _full_price(product: ProductPricingInput, price: Decimal) -> PriceResolution:
    return PriceResolution(
        product_id=product.id,
        has_discount=False,
        original_price=price,
        final_price=price,
        is_on_clearance=product.is_on_clearance,
    )


def _id_set(values: Iterable[Any] | None) -> set[str]:
    return {str(value) for value in (values or [])}


def has_usage_available(promotion: Any) -> bool:
    if promotion.usage_limit is None:
        return True
    return (promotion.current_usage or 0) < promotion.usage_limit


def is_promotion_current(promotion: Any, now: datetime) -> bool:
    """Active, inside its window and not exhausted."""
    if not promotion.is_active:
        return False
    if not is_within_window(promotion.start_at, promotion.end_at, now):
        return False
    return has_usage_available(promotion)


def promotion_matches(promotion: Any, product: ProductPricingInput) -> bool:
    promotion_type = PromotionType(promotion.promotion_type)
    if promotion_type == PromotionType.store_wide:
        return True
    if promotion_type == PromotionType.category:
        if product.category_id is None:
            return False
        return str(product.category_id) in _id_set(promotion.applicable_categories)
    if promotion_type == PromotionType.product_specific:
        return str(product.id) in _id_set(promotion.applicable_products)
    if promotion_type == PromotionType.clearance:
        return product.is_on_clearance or str(product.id) in _id_set(promotion.applicable_products)
    return False


def meets_minimum_purchase(promotion: Any, cart_subtotal: Optional[Decimal]) -> bool:
    # Sin subtotal (vista de producto) se muestra el descuento de forma optimista.
    if cart_subtotal is None:
        return True
    minimum = promotion.minimum_purchase
    if minimum is None or Decimal(str(minimum)) <= ZERO:
        return True
    return Decimal(str(cart_subtotal)) >= Decimal(str(minimum))


def _tie_break_key(promotion: Any, discount: Decimal) -> tuple:
    created_at = getattr(promotion, "created_at", None)
    # los que no tienen fecha van al final
    created_rank = -as_aware(created_at).timestamp() if created_at else float("inf")
    return (-(promotion.priority or 0), -discount, created_rank, str(promotion.id))


def select_promotion(
    candidates: Sequence[Any], base_price: Decimal
) -> Optional[tuple[Any, Decimal]]:
    """Pick one promotion: priority, then larger discount, then newest, then id."""
    if not candidates:
        return None
    priced = [
        (promo, apply_discount(base_price, promo.discount_type, promo.discount_value))
        for promo in candidates
    ]
    priced.sort(key=lambda item: _tie_break_key(item[0], base_price - item[1]))
    return priced[0]


def build_badge_text(promotion: Any, percentage: int, amount: Decimal) -> str:
    if DiscountType(promotion.discount_type) == DiscountType.percentage:
        text = f"{percentage}% OFF"
    else:
        text = f"{settings.CURRENCY_SYMBOL}{amount:.2f} OFF"
    if PromotionType(promotion.promotion_type) == PromotionType.clearance:
        return f"CLEARANCE {text}"
    return text


def resolve_price(
    product: ProductPricingInput,
    promotions: Iterable[Any],
    now: datetime,
    *,
    cart_subtotal: Optional[Decimal] = None,
) -> PriceResolution:
    """Resolve the single effective discount of ``product``.

    ``cart_subtotal`` is only given by checkout; product pages leave it out and
    get the optimistic price that ignores promotion minimum purchases.
    """
    base = product.base_price
    if base is None or base <= ZERO:
        logger.warning(
            "Invalid base price, resolving without discount",
            extra={"product_id": str(product.id), "base_price": str(base)},
        )
        record_price_resolution("input_invalid")
        return _full_price(product, base if base is not None else ZERO)

    original = to_money(base)
    candidates = [
        promo
        for promo in promotions
        if is_promotion_current(promo, now)
        and promotion_matches(promo, product)
        and meets_minimum_purchase(promo, cart_subtotal)
    ]
    selected = select_promotion(candidates, original)
    if selected is None:
        record_price_resolution("full_price")
        return _full_price(product, original)

    promotion, final = selected
    if final >= original:
        record_price_resolution("full_price")
        return _full_price(product, original)

    percentage = effective_percentage(original, final)
    record_price_resolution("discounted")
    return PriceResolution(
        product_id=product.id,
        has_discount=True,
        original_price=original,
        final_price=final,
        discount_percentage=percentage,
        applied_promotion_id=promotion.id,
        badge_text=build_badge_text(promotion, percentage, original - final),
        is_on_clearance=product.is_on_clearance,
    )


def resolve_many(
    products: Iterable[ProductPricingInput],
    promotions: Sequence[Any],
    now: datetime,
    *,
    cart_subtotal: Optional[Decimal] = None,
) -> dict[UUID, PriceResolution]:
    return {
        product.id: resolve_price(product, promotions, now, cart_subtotal=cart_subtotal)
        for product in products
    }
