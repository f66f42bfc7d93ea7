# storefront/services/order_service.py
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.errors import (
    AccessDenied,
    CartStockConflict,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services import pricing
from storefront.services.cart_service import CART_MODIFIED, CartService
from storefront.services.handoff import (
    HandoffLine,
    ShippingAddress,
    build_handoff_message,
    handoff_destination,
    handoff_url,
)
from storefront.services.idempotency_service import IdempotencyService
from storefront.services.inventory_service import InventoryService
from storefront.services.notification_service import NotificationService
from storefront.services.shipping import calculate_shipping
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

#forward one step at a time, or cancel while not finished
STATUS_TRANSITIONS = {
    "pending": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}

ADDRESS_FIELDS = {
    "full_name": "fullName",
    "address": "address",
    "city": "city",
    "postal_code": "postalCode",
    "phone": "phone",
}


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    name: str
    quantity: int
    price: Decimal

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


def validate_address(**fields) -> ShippingAddress:
    cleaned = {key: (fields.get(key) or "").strip() for key in ADDRESS_FIELDS}
    missing = [f"{ADDRESS_FIELDS[key]} is required" for key, value in cleaned.items() if not value]
    if missing:
        raise ValidationError("Shipping details are incomplete", missing)
    return ShippingAddress(**cleaned)


def order_view(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "subtotal": order.subtotal,
        "discount_amount": order.discount_amount,
        "total": order.total,
        "shipping_weight": order.shipping_weight,
        "shipping_boxes": order.shipping_boxes,
        "shipping_name": order.shipping_name,
        "shipping_address": order.shipping_address,
        "shipping_city": order.shipping_city,
        "shipping_postal_code": order.shipping_postal_code,
        "shipping_phone": order.shipping_phone,
        "coupon_id": order.coupon_id,
        "coupon_code": order.coupon_code,
        "created_at": order.created_at,
        "items": [
            {
                "product_id": i.product_id,
                "product_name": i.product_name,
                "quantity": i.quantity,
                "price": i.price,
                "line_total": i.price * i.quantity,
            }
            for i in order.items
        ],
    }


class OrderService:
    """
    Turns a cart into an order.

    The order row, its items, the stock decrements and the cart reset share one
    transaction: either all of them are committed or none is.
    """

    def __init__(self, db: Session, idempotency: IdempotencyService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.cart_service = CartService(db)
        self.inventory = InventoryService(db)
        self.idempotency = idempotency
        self.notification_service = NotificationService()

    def place_order(
        self,
        user_id: int,
        cart_id: int,
        full_name: str | None,
        address: str | None,
        city: str | None,
        postal_code: str | None,
        phone: str | None,
        idempotency_key: str | None = None,
    ) -> Dict[str, Any]:
        shipping_address = validate_address(
            full_name=full_name,
            address=address,
            city=city,
            postal_code=postal_code,
            phone=phone,
        )

        if not idempotency_key or self.idempotency is None:
            return self._place_order(user_id, cart_id, shipping_address)

        try:
            claim = self.idempotency.claim(user_id, idempotency_key)
        except RedisError as e:
            logger.error(f"idempotency_claim failed for user {user_id}, key {idempotency_key}: {e}")
            raise StorageError("idempotency_claim")

        if not claim.acquired:
            if claim.stored is not None:
                return claim.stored
            raise ConflictError(
                "An order with this Idempotency-Key is still being processed",
                {"idempotencyKey": idempotency_key},
            )

        try:
            result = self._place_order(user_id, cart_id, shipping_address)
        except Exception:
            self._release(claim)
            raise

        try:
            self.idempotency.complete(claim, result)
        except RedisError as e:
            #the order is committed, the caller still gets it
            logger.error(
                f"idempotency_complete failed for order {result['order_id']}, key {claim.key}: {e}"
            )
            self._release(claim)

        return result

    def _release(self, claim) -> None:
        try:
            self.idempotency.release(claim)
        except RedisError as e:
            logger.error(f"idempotency_release failed for key {claim.key}: {e}")

    def _place_order(self, user_id: int, cart_id: int, shipping_address: ShippingAddress) -> Dict[str, Any]:
        cart = self.cart_service.get_owned_cart(cart_id, user_id)

        items = self.carts.get_cart_items(cart.id)
        if not items:
            raise ValidationError("The cart is empty")

        # 1. final stock gate
        validation = self.inventory.validate_cart_stock(cart.id)
        if not validation.valid:
            logger.info(f"Order from cart {cart.id} rejected, {len(validation.issues)} stock issue(s)")
            raise CartStockConflict([issue.as_dict() for issue in validation.issues])

        # 2. prices resolved once, reused for the order items and the message
        #plain values, the cart rows are gone once the transaction commits
        lines = [
            OrderLine(
                product_id=item.product_id,
                name=item.product.name,
                quantity=item.quantity,
                price=pricing.unit_price(item.product),
            )
            for item in items
        ]
        subtotal = sum((line.total for line in lines), Decimal("0.00"))
        discount = pricing.clamp_discount(cart.discount_amount, subtotal)
        total = pricing.order_total(subtotal, discount)

        # 3. informational only
        shipping = calculate_shipping(items)

        coupon_id, coupon_code = cart.coupon_id, cart.coupon_code
        cart_version = cart.version

        try:
            # 4.
            order = self.repo.add_order(
                OrderModel(
                    user_id=user_id,
                    status="pending",
                    subtotal=subtotal,
                    discount_amount=discount,
                    total=total,
                    shipping_cost=Decimal("0.00"),
                    shipping_weight=shipping.total_weight,
                    shipping_boxes=shipping.boxes,
                    shipping_name=shipping_address.full_name,
                    shipping_address=shipping_address.address,
                    shipping_city=shipping_address.city,
                    shipping_postal_code=shipping_address.postal_code,
                    shipping_phone=shipping_address.phone,
                    coupon_id=coupon_id,
                    coupon_code=coupon_code,
                )
            )

            # 5.
            self.repo.add_order_items(
                [
                    OrderItemModel(
                        order_id=order.id,
                        product_id=line.product_id,
                        product_name=line.name,
                        quantity=line.quantity,
                        price=line.price,
                    )
                    for line in lines
                ]
            )

            # 6.
            for line in lines:
                self.products.decrement_stock(line.product_id, line.quantity)

            # 7. version check: a concurrent checkout or cart edit makes this a no-op
            self.carts.clear_cart_items(cart.id)
            rowcount = self.carts.update_cart_version(
                cart_id=cart.id,
                old_version=cart_version,
                new_data={
                    "coupon_id": None,
                    "coupon_code": None,
                    "discount_amount": Decimal("0.00"),
                    "version": cart_version + 1,
                },
            )
            if rowcount == 0:
                self.repo.rollback()
                raise ConflictError(CART_MODIFIED)

            order_id = order.id
            self.repo.commit()

        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"place_order failed for cart {cart_id}, user {user_id}: {e}")
            raise StorageError("place_order")

        logger.info(f"Order {order_id} created from cart {cart_id}, total {total}")

        # 8.
        message = build_handoff_message(
            order_id=order_id,
            lines=[
                HandoffLine(name=line.name, quantity=line.quantity, line_total=line.total)
                for line in lines
            ],
            subtotal=subtotal,
            discount=discount,
            total=total,
            shipping=shipping,
            address=shipping_address,
        )
        destination = handoff_destination()

        self.notification_service.send_order_notification(user_id, order_id, str(total))

        return {
            "order_id": order_id,
            "subtotal": subtotal,
            "discount": discount,
            "total": total,
            "shipping": shipping.as_dict(),
            "handoff_destination": destination,
            "handoff_message": message,
            "handoff_url": handoff_url(message, destination),
        }

    #queries
    def get_order(self, order_id: int, user_id: int, is_admin: bool = False) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFoundError("Order")

        if order.user_id != user_id and not is_admin:
            raise AccessDenied("Not authorized to access this order")

        return order_view(order)

    def list_user_orders(self, user_id: int) -> List[Dict[str, Any]]:
        return [order_view(o) for o in self.repo.list_orders_by_user(user_id)]

    def list_orders(self, status: str | None = None) -> List[Dict[str, Any]]:
        if status and status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status '{status}'")
        return [order_view(o) for o in self.repo.list_orders(status)]

    #admin command
    def update_status(self, order_id: int, status: str | None) -> Dict[str, Any]:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order")

        if status == order.status:
            return order_view(order)

        if status not in STATUS_TRANSITIONS[order.status]:
            raise ValidationError(f"Cannot change order status from '{order.status}' to '{status}'")

        try:
            updated = self.repo.update_order_status(order, status)
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"update_order_status failed for order {order_id}: {e}")
            raise StorageError("update_order_status")

        logger.info(f"Order {order_id} status -> {status}")
        return order_view(updated)
