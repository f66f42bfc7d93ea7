# storefront/services/pricing.py
"""
Pricing rules shared by every place a line total is computed
(cart snapshot, coupon subtotal, order placement).
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _as_decimal(value) -> Decimal | None:
    if value is None:
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def has_valid_sale(product) -> bool:
    """
    A sale only takes effect when it is active and its price is a positive number
    strictly below the base price. Anything else is treated as no sale.
    """
    if not getattr(product, "sale_active", False):
        return False
    sale_price = _as_decimal(getattr(product, "sale_price", None))
    base_price = _as_decimal(product.price) or Decimal("0")
    return sale_price is not None and Decimal("0") < sale_price < base_price


def unit_price(product) -> Decimal:
    if has_valid_sale(product):
        return to_money(product.sale_price)
    return to_money(_as_decimal(product.price) or Decimal("0"))


def line_total(item) -> Decimal:
    return unit_price(item.product) * item.quantity


def cart_subtotal(items: Iterable) -> Decimal:
    return sum((line_total(i) for i in items), Decimal("0.00"))


def clamp_discount(discount, subtotal: Decimal) -> Decimal:
    """Discount bounded to [0, subtotal]."""
    value = _as_decimal(discount) or Decimal("0")
    return to_money(min(max(value, Decimal("0")), subtotal))


def order_total(subtotal: Decimal, discount: Decimal) -> Decimal:
    return max(Decimal("0.00"), subtotal - discount)


def sale_price_for(base_price, percentage: Decimal) -> Decimal:
    return to_money(Decimal(str(base_price)) * (Decimal("1") - Decimal(str(percentage)) / Decimal("100")))
