from . import admin_coupons
from . import admin_promotions
from . import cart
from . import categories
from . import coupons
from . import orders
from . import products
from . import promotions

__all__ = [
    "admin_coupons",
    "admin_promotions",
    "cart",
    "categories",
    "coupons",
    "orders",
    "products",
    "promotions",
]
