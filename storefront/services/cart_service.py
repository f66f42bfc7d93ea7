# storefront/services/cart_service.py
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import (
    AccessDenied,
    ConflictError,
    NotFoundError,
    StockConflict,
    StorageError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services import pricing
from storefront.services.inventory_service import CartStockValidation, InventoryService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CART_MODIFIED = "Cart was modified by another request, reload it and try again"


def validate_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be a positive integer")
    return quantity


def product_view(product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "category_id": product.category_id,
        "price": pricing.to_money(product.price),
        "stock": product.stock,
        "weight": product.weight,
        "sale_active": bool(product.sale_active),
        "sale_price": product.sale_price,
        "sale_percentage": product.sale_percentage,
    }


def item_view(item: CartItemModel) -> Dict[str, Any]:
    return {
        "id": item.id,
        "cart_id": item.cart_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
    }


class CartService:
    """
    Cart commands (add, set quantity, remove) and the snapshot query.

    Every command checks stock through InventoryService before writing and bumps
    the cart version so a checkout running at the same time notices the change.
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.inventory = InventoryService(db)

    #ownership
    def get_owned_cart(self, cart_id: int, user_id: int) -> CartModel:
        cart = self.repo.get_cart(cart_id)

        if not cart:
            raise NotFoundError("Cart")

        if cart.user_id != user_id:
            raise AccessDenied("Not authorized to access this cart")

        return cart

    def get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            return cart

        try:
            created = self.repo.create_cart(
                CartModel(user_id=user_id, version=1, discount_amount=Decimal("0.00"))
            )
        except IntegrityError:
            #another request created it first
            self.repo.rollback()
            cart = self.repo.get_cart_by_user(user_id)
            if cart:
                return cart
            raise
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"create_cart failed for user {user_id}: {e}")
            raise StorageError("create_cart")

        logger.info(f"Created cart {created.id} for user {user_id}")
        return created

    #query
    def get_cart_snapshot(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)

        if not cart:
            return {
                "cart_id": None,
                "items": [],
                "subtotal": Decimal("0.00"),
                "discount": Decimal("0.00"),
                "coupon_code": None,
                "item_count": 0,
            }

        return self.build_snapshot(cart)

    def build_snapshot(self, cart: CartModel) -> Dict[str, Any]:
        items = self.repo.get_cart_items(cart.id)
        subtotal = pricing.cart_subtotal(items)
        #items may have been removed after the coupon was applied
        discount = pricing.clamp_discount(cart.discount_amount, subtotal)

        return {
            "cart_id": cart.id,
            "items": [
                {
                    **item_view(i),
                    "unit_price": pricing.unit_price(i.product),
                    "line_total": pricing.line_total(i),
                    "product": product_view(i.product),
                }
                for i in items
            ],
            "subtotal": subtotal,
            "discount": discount,
            "coupon_code": cart.coupon_code,
            "item_count": len(items),
        }

    def validate_cart_stock(self, user_id: int, cart_id: int) -> CartStockValidation:
        self.get_owned_cart(cart_id, user_id)
        return self.inventory.validate_cart_stock(cart_id)

    #commands
    def add_item(self, user_id: int, product_id: int, quantity: Any = 1) -> Dict[str, Any]:
        quantity = validate_quantity(quantity)

        product = self.products.get_product(product_id)
        if not product:
            raise NotFoundError("Product")

        cart = self.get_or_create_cart(user_id)
        existing_item = self.repo.get_cart_item_by_product(cart.id, product_id)
        current_in_cart = existing_item.quantity if existing_item else 0
        new_total = current_in_cart + quantity

        check = self.inventory.validate_stock_availability(product_id, new_total, cart.id)

        if not check.available:
            if check.available_stock == 0:
                message = check.message
            else:
                message = f"You can only add {check.available_stock} unit(s) to your cart"
                if existing_item:
                    message += f" (you already have {current_in_cart})"

            logger.info(
                f"Rejected add of product {product_id} to cart {cart.id}: "
                f"requested {new_total}, available {check.available_stock}"
            )
            raise StockConflict(message, check.available_stock, current_in_cart)

        try:
            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart {cart.id}, "
                    f"quantity {current_in_cart} -> {new_total}"
                )
                existing_item.quantity = new_total
                item = self.repo.add_cart_item(existing_item)
            else:
                logger.info(f"Adding product {product_id} to cart {cart.id}")
                item = self.repo.add_cart_item(
                    CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
                )

            self._bump_version(cart)
            self.repo.commit()

        except IntegrityError as e:
            self.repo.rollback()
            logger.warning(f"Concurrent add of product {product_id} to cart {cart.id}: {e}")
            raise ConflictError(CART_MODIFIED)
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"add_cart_item failed for cart {cart.id}, product {product_id}: {e}")
            raise StorageError("add_cart_item")

        return item_view(item)

    def update_item_quantity(self, user_id: int, item_id: int, quantity: Any) -> Dict[str, Any]:
        quantity = validate_quantity(quantity)

        item = self.repo.get_cart_item(item_id)
        if not item:
            raise NotFoundError("Cart item")

        #ownership comes from the parent cart, never from the request
        cart = self.get_owned_cart(item.cart_id, user_id)

        check = self.inventory.validate_stock_availability(item.product_id, quantity, cart.id)
        if not check.available:
            raise StockConflict(check.message, check.available_stock)

        try:
            item.quantity = quantity
            self.repo.add_cart_item(item)
            self._bump_version(cart)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"update_cart_item failed for item {item_id}: {e}")
            raise StorageError("update_cart_item")

        logger.info(f"Cart item {item_id} in cart {cart.id} set to quantity {quantity}")
        return item_view(item)

    def remove_item(self, user_id: int, item_id: int) -> None:
        item = self.repo.get_cart_item(item_id)
        if not item:
            raise NotFoundError("Cart item")

        cart = self.get_owned_cart(item.cart_id, user_id)

        try:
            self.repo.delete_cart_item(item_id)
            self._bump_version(cart)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"delete_cart_item failed for item {item_id}: {e}")
            raise StorageError("delete_cart_item")

        logger.info(f"Removed item {item_id} from cart {cart.id}")

    def _bump_version(self, cart: CartModel) -> None:
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={"version": cart.version + 1},
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConflictError(CART_MODIFIED)
