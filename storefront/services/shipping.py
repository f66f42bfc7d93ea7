# storefront/services/shipping.py
"""
Shipping estimate for a set of cart/order lines.

Informational only: the cost is shown to the customer but is never added to the
order total, shipping is arranged over the handoff channel.
"""
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from storefront.utils.settings import (
    DEFAULT_PRODUCT_WEIGHT,
    MAX_WEIGHT_PER_BOX,
    SHIPPING_COST_PER_BOX,
)


@dataclass(frozen=True)
class ShippingEstimate:
    total_weight: Decimal
    boxes: int
    cost: Decimal

    @property
    def is_free(self) -> bool:
        return self.cost == 0

    @property
    def details(self) -> str:
        return f"{self.boxes} box(es) - {self.total_weight:.2f} kg total"

    def as_dict(self) -> dict:
        return {
            "total_weight": self.total_weight,
            "boxes": self.boxes,
            "cost": self.cost,
            "is_free": self.is_free,
            "details": self.details,
        }


def item_weight(product) -> Decimal:
    weight = getattr(product, "weight", None)
    if weight is None or Decimal(str(weight)) <= 0:
        return DEFAULT_PRODUCT_WEIGHT
    return Decimal(str(weight))


def calculate_total_weight(items: Iterable) -> Decimal:
    """items: anything with .product and .quantity (cart items, order lines)."""
    return sum(
        (item_weight(item.product) * item.quantity for item in items),
        Decimal("0"),
    )


def calculate_boxes_needed(total_weight: Decimal) -> int:
    if total_weight <= 0:
        return 0
    return math.ceil(total_weight / MAX_WEIGHT_PER_BOX)


def calculate_shipping(items: Iterable) -> ShippingEstimate:
    total_weight = calculate_total_weight(items)
    boxes = calculate_boxes_needed(total_weight)
    return ShippingEstimate(
        total_weight=total_weight,
        boxes=boxes,
        cost=SHIPPING_COST_PER_BOX * boxes,
    )
