# teestore/domain/enums.py
import enum


class DiscountType(str, enum.Enum):
    percentage = "percentage"
    fixed_amount = "fixed_amount"


class PromotionType(str, enum.Enum):
    store_wide = "store_wide"
    category = "category"
    product_specific = "product_specific"
    clearance = "clearance"


class CouponFailureReason(str, enum.Enum):
    input_invalid = "input_invalid"
    not_found = "not_found"
    inactive = "inactive"
    expired = "expired"
    not_yet_started = "not_yet_started"
    usage_limit_reached = "usage_limit_reached"
    minimum_purchase_not_met = "minimum_purchase_not_met"


class CartStatus(str, enum.Enum):
    active = "active"
    converted = "converted"
    abandoned = "abandoned"


class OrderStatus(str, enum.Enum):
    pending_payment = "pending_payment"
    paid = "paid"
    cancelled = "cancelled"
