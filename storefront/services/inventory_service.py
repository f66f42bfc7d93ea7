# storefront/services/inventory_service.py
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StockCheck:
    available: bool
    available_stock: int
    message: str | None = None


@dataclass
class StockIssue:
    product_id: int
    product_name: str
    requested: int
    available: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "requested": self.requested,
            "available": self.available,
        }


@dataclass
class CartStockValidation:
    valid: bool
    issues: List[StockIssue] = field(default_factory=list)


def unavailable_message(available_stock: int) -> str:
    if available_stock == 0:
        return "This product is no longer available"
    return f"Only {available_stock} unit(s) available"


class InventoryService:
    """
    Stock reconciliation across shared carts.

    Every unit sitting in somebody else's cart counts as reserved, there is no
    reservation expiry. Reads are not serialized against concurrent writes; the
    final gate is validate_cart_stock at order placement.
    """

    def __init__(self, db: Session):
        self.products = ProductRepo(db)
        self.carts = CartRepo(db)

    def get_available_stock(self, product_id: int, exclude_cart_id: int | None = None) -> int:
        stock = self.products.get_stock(product_id)
        if stock is None:
            return 0

        reserved = self.products.reserved_quantity(product_id, exclude_cart_id)
        return max(0, stock - reserved)

    def validate_stock_availability(
        self,
        product_id: int,
        requested_quantity: int,
        exclude_cart_id: int | None = None,
    ) -> StockCheck:
        available_stock = self.get_available_stock(product_id, exclude_cart_id)

        if available_stock >= requested_quantity:
            return StockCheck(available=True, available_stock=available_stock)

        return StockCheck(
            available=False,
            available_stock=available_stock,
            message=unavailable_message(available_stock),
        )

    def validate_cart_stock(self, cart_id: int) -> CartStockValidation:
        items = self.carts.get_cart_items(cart_id)
        issues: List[StockIssue] = []

        for item in items:
            check = self.validate_stock_availability(item.product_id, item.quantity, cart_id)
            if not check.available:
                issues.append(
                    StockIssue(
                        product_id=item.product_id,
                        product_name=item.product.name if item.product else "Product",
                        requested=item.quantity,
                        available=check.available_stock,
                    )
                )

        if issues:
            logger.info(f"Cart {cart_id} has {len(issues)} line(s) above available stock")

        return CartStockValidation(valid=not issues, issues=issues)
