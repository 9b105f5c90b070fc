from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from teestore.domain.enums import DiscountType, PromotionType
from teestore.services.pricing import (
    ProductPricingInput,
    apply_discount,
    effective_percentage,
    resolve_many,
    resolve_price,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def _promo(**overrides):
    data = {
        "id": uuid4(),
        "name": "Promo",
        "discount_type": DiscountType.percentage,
        "discount_value": Decimal("10"),
        "start_at": NOW - timedelta(days=1),
        "end_at": NOW + timedelta(days=1),
        "is_active": True,
        "promotion_type": PromotionType.store_wide,
        "applicable_categories": [],
        "applicable_products": [],
        "minimum_purchase": None,
        "usage_limit": None,
        "current_usage": 0,
        "priority": 0,
        "created_at": NOW - timedelta(days=2),
    }
    data.update(overrides)
    return SimpleNamespace(**data)


def _product(price="50.00", **overrides):
    data = {"id": uuid4(), "base_price": Decimal(price)}
    data.update(overrides)
    return ProductPricingInput(**data)


def test_percentage_store_wide_promotion():
    promo = _promo(discount_value=Decimal("20"), priority=1)
    result = resolve_price(_product("50.00"), [promo], NOW)

    assert result.has_discount is True
    assert result.original_price == Decimal("50.00")
    assert result.final_price == Decimal("40.00")
    assert result.discount_percentage == 20
    assert result.applied_promotion_id == promo.id
    assert result.badge_text == "20% OFF"


@pytest.mark.parametrize(
    "base, value, expected",
    [
        ("19.99", "15", "16.99"),
        ("10.00", "33", "6.70"),
        ("10.05", "50", "5.03"),  # half-up, no bancario
        ("80.00", "100", "0.00"),
        ("25.00", "0", "25.00"),
    ],
)
def test_percentage_price_rounds_half_up(base, value, expected):
    assert apply_discount(Decimal(base), DiscountType.percentage, Decimal(value)) == Decimal(expected)


@pytest.mark.parametrize(
    "base, value, expected",
    [
        ("50.00", "15", "35.00"),
        ("50.00", "50", "0.00"),
        ("50.00", "60", "0.00"),
    ],
)
def test_fixed_amount_is_clamped_at_zero(base, value, expected):
    assert apply_discount(Decimal(base), DiscountType.fixed_amount, Decimal(value)) == Decimal(expected)


def test_percentage_above_hundred_is_clamped():
    assert apply_discount(Decimal("40.00"), DiscountType.percentage, Decimal("120")) == Decimal("0.00")


def test_fixed_amount_reports_effective_percentage_and_badge():
    promo = _promo(discount_type=DiscountType.fixed_amount, discount_value=Decimal("15"))
    result = resolve_price(_product("50.00"), [promo], NOW)

    assert result.final_price == Decimal("35.00")
    assert result.discount_percentage == 30
    assert result.discount_amount == Decimal("15.00")
    assert result.badge_text == "$15.00 OFF"


def test_effective_percentage_rounds_half_up():
    assert effective_percentage(Decimal("40.00"), Decimal("39.80")) == 1  # 0.5 -> 1
    assert effective_percentage(Decimal("0"), Decimal("0")) == 0


def test_no_matching_promotion_returns_full_price():
    promo = _promo(promotion_type=PromotionType.category, applicable_categories=[str(uuid4())])
    result = resolve_price(_product("30.00", category_id=uuid4()), [promo], NOW)

    assert result.has_discount is False
    assert result.final_price == result.original_price == Decimal("30.00")
    assert result.applied_promotion_id is None
    assert result.badge_text is None


@pytest.mark.parametrize("price", ["0", "-5.00"])
def test_non_positive_base_price_resolves_without_discount(price, caplog):
    promo = _promo(discount_value=Decimal("20"))
    with caplog.at_level("WARNING"):
        result = resolve_price(_product(price), [promo], NOW)

    assert result.has_discount is False
    assert result.discount_percentage == 0
    assert result.applied_promotion_id is None
    assert "Invalid base price" in caplog.text


def test_never_stacks_promotions():
    product = _product("100.00", category_id=uuid4())
    promotions = [
        _promo(discount_value=Decimal("10")),
        _promo(
            promotion_type=PromotionType.category,
            applicable_categories=[str(product.category_id)],
            discount_value=Decimal("25"),
        ),
        _promo(
            promotion_type=PromotionType.product_specific,
            applicable_products=[str(product.id)],
            discount_type=DiscountType.fixed_amount,
            discount_value=Decimal("5"),
        ),
    ]
    result = resolve_price(product, promotions, NOW)

    assert result.applied_promotion_id in {promo.id for promo in promotions}
    # 25% sobre 100 es el mayor descuento individual; nunca 10% + 25% + 5
    assert result.final_price == Decimal("75.00")


def test_tie_break_prefers_larger_discount_every_time():
    ten = _promo(priority=5, discount_value=Decimal("10"))
    fifteen = _promo(priority=5, discount_value=Decimal("15"))
    product = _product("80.00")

    for candidates in ([ten, fifteen], [fifteen, ten]):
        for _ in range(3):
            result = resolve_price(product, candidates, NOW)
            assert result.applied_promotion_id == fifteen.id
            assert result.final_price == Decimal("68.00")


def test_priority_wins_over_discount_size():
    small_but_important = _promo(priority=10, discount_value=Decimal("5"))
    big = _promo(priority=1, discount_value=Decimal("50"))
    result = resolve_price(_product("40.00"), [big, small_but_important], NOW)

    assert result.applied_promotion_id == small_but_important.id
    assert result.final_price == Decimal("38.00")


def test_equal_priority_and_discount_prefers_newest():
    older = _promo(created_at=NOW - timedelta(days=10))
    newer = _promo(created_at=NOW - timedelta(hours=1))
    result = resolve_price(_product(), [older, newer], NOW)
    assert result.applied_promotion_id == newer.id


def test_missing_created_at_falls_back_to_id_order():
    first = _promo(id=uuid4(), created_at=None)
    second = _promo(id=uuid4(), created_at=None)
    expected = min((first, second), key=lambda promo: str(promo.id))

    assert resolve_price(_product(), [first, second], NOW).applied_promotion_id == expected.id
    assert resolve_price(_product(), [second, first], NOW).applied_promotion_id == expected.id


def test_promotion_with_timestamp_beats_one_without():
    dated = _promo(created_at=NOW - timedelta(days=30))
    undated = _promo(created_at=None)
    assert resolve_price(_product(), [undated, dated], NOW).applied_promotion_id == dated.id


@pytest.mark.parametrize(
    "overrides",
    [
        {"is_active": False},
        {"start_at": NOW + timedelta(hours=1)},
        {"end_at": NOW - timedelta(seconds=1)},
        {"usage_limit": 3, "current_usage": 3},
    ],
)
def test_promotions_that_are_not_current_are_ignored(overrides):
    result = resolve_price(_product(), [_promo(**overrides)], NOW)
    assert result.has_discount is False


def test_window_bounds_are_inclusive():
    starts_now = _promo(start_at=NOW)
    ends_now = _promo(end_at=NOW)
    assert resolve_price(_product(), [starts_now], NOW).has_discount is True
    assert resolve_price(_product(), [ends_now], NOW).has_discount is True


def test_naive_datetimes_are_treated_as_utc():
    naive = _promo(start_at=(NOW - timedelta(days=1)).replace(tzinfo=None), end_at=(NOW + timedelta(days=1)).replace(tzinfo=None))
    assert resolve_price(_product(), [naive], NOW).has_discount is True


def test_category_promotion_requires_category_match():
    category_id = uuid4()
    promo = _promo(promotion_type=PromotionType.category, applicable_categories=[str(category_id)])

    assert resolve_price(_product(category_id=category_id), [promo], NOW).has_discount is True
    assert resolve_price(_product(category_id=None), [promo], NOW).has_discount is False


def test_product_specific_promotion():
    product = _product()
    promo = _promo(promotion_type=PromotionType.product_specific, applicable_products=[str(product.id)])

    assert resolve_price(product, [promo], NOW).applied_promotion_id == promo.id
    assert resolve_price(_product(), [promo], NOW).has_discount is False


def test_clearance_matches_flag_or_explicit_product():
    promo = _promo(promotion_type=PromotionType.clearance, discount_value=Decimal("40"))
    flagged = _product("35.00", is_on_clearance=True)
    listed = _product("35.00")
    listed_promo = _promo(
        promotion_type=PromotionType.clearance,
        discount_value=Decimal("40"),
        applicable_products=[str(listed.id)],
    )

    result = resolve_price(flagged, [promo], NOW)
    assert result.final_price == Decimal("21.00")
    assert result.is_on_clearance is True
    assert result.badge_text == "CLEARANCE 40% OFF"

    assert resolve_price(listed, [listed_promo], NOW).has_discount is True
    assert resolve_price(_product("35.00"), [promo], NOW).has_discount is False


def test_minimum_purchase_is_optimistic_on_display_and_enforced_with_subtotal():
    promo = _promo(discount_value=Decimal("10"), minimum_purchase=Decimal("100"))
    product = _product("40.00")

    assert resolve_price(product, [promo], NOW).has_discount is True
    assert resolve_price(product, [promo], NOW, cart_subtotal=Decimal("80.00")).has_discount is False
    assert resolve_price(product, [promo], NOW, cart_subtotal=Decimal("100.00")).has_discount is True


def test_unmet_minimum_falls_back_to_next_promotion():
    gated = _promo(priority=10, discount_value=Decimal("30"), minimum_purchase=Decimal("200"))
    fallback = _promo(priority=1, discount_value=Decimal("10"))
    result = resolve_price(_product("50.00"), [gated, fallback], NOW, cart_subtotal=Decimal("50.00"))

    assert result.applied_promotion_id == fallback.id
    assert result.final_price == Decimal("45.00")


def test_resolution_is_idempotent():
    product = _product("59.90", category_id=uuid4())
    promotions = [
        _promo(discount_value=Decimal("12.5"), priority=2),
        _promo(discount_type=DiscountType.fixed_amount, discount_value=Decimal("7"), priority=2),
    ]
    assert resolve_price(product, promotions, NOW) == resolve_price(product, promotions, NOW)


def test_resolve_many_keys_results_by_product():
    products = [_product("10.00"), _product("20.00")]
    results = resolve_many(products, [_promo(discount_value=Decimal("50"))], NOW)

    assert set(results) == {product.id for product in products}
    assert results[products[1].id].final_price == Decimal("10.00")


def test_cache_fields_mirror_the_resolution():
    promo = _promo(discount_value=Decimal("20"))
    cache = resolve_price(_product("50.00"), [promo], NOW).as_cache()
    assert cache == {
        "cached_final_price": Decimal("40.00"),
        "cached_discount_percentage": 20,
        "cached_promotion_id": promo.id,
    }
