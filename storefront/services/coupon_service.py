# storefront/services/coupon_service.py
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.coupon import CouponModel
from storefront.domain.errors import (
    ConflictError,
    CouponRejected,
    NotFoundError,
    StorageError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.coupon_repo import CouponRepo
from storefront.services import pricing
from storefront.services.cart_service import CART_MODIFIED, CartService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

DISCOUNT_TYPES = ("percentage", "fixed")


def _as_utc(value: datetime | None) -> datetime | None:
    #sqlite hands back naive datetimes
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a number")
    return parsed


def compute_discount(coupon: CouponModel, subtotal: Decimal) -> Decimal:
    value = Decimal(str(coupon.discount_value))
    if coupon.discount_type == "percentage":
        discount = subtotal * value / Decimal("100")
    else:
        discount = value
    #never more than the subtotal
    return pricing.to_money(min(discount, subtotal))


def check_coupon_window(coupon: CouponModel, now: datetime) -> None:
    if not coupon.active:
        raise CouponRejected("inactive", "This coupon is not active")

    valid_from = _as_utc(coupon.valid_from)
    valid_to = _as_utc(coupon.valid_to)

    if valid_from and now < valid_from:
        raise CouponRejected("not_started", "This coupon is not valid yet")
    if valid_to and now > valid_to:
        raise CouponRejected("expired", "This coupon has expired")


def check_subtotal_bounds(coupon: CouponModel, subtotal: Decimal) -> None:
    min_subtotal = Decimal(str(coupon.min_subtotal or 0))
    if subtotal < min_subtotal:
        raise CouponRejected(
            "below_minimum",
            f"Cart subtotal is below the minimum of {pricing.to_money(min_subtotal)} for this coupon",
        )

    if coupon.max_subtotal is not None and subtotal > Decimal(str(coupon.max_subtotal)):
        raise CouponRejected(
            "above_maximum",
            f"Cart subtotal exceeds the maximum of {pricing.to_money(coupon.max_subtotal)} for this coupon",
        )


def coupon_view(coupon: CouponModel) -> Dict[str, Any]:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "description": coupon.description,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "min_subtotal": coupon.min_subtotal,
        "max_subtotal": coupon.max_subtotal,
        "active": coupon.active,
        "valid_from": _as_utc(coupon.valid_from),
        "valid_to": _as_utc(coupon.valid_to),
        "created_at": _as_utc(coupon.created_at),
    }


class CouponService:
    """
    Applying/removing coupons on a cart and admin maintenance of coupon rules.

    A cart holds at most one coupon; applying another one overwrites it.
    """

    def __init__(self, db: Session):
        self.repo = CouponRepo(db)
        self.carts = CartRepo(db)
        self.cart_service = CartService(db)

    #cart side
    def apply_coupon(self, user_id: int, cart_id: int, code: str, now: datetime | None = None) -> Dict[str, Any]:
        if not code or not str(code).strip():
            raise ValidationError("Coupon code is required")

        cart = self.cart_service.get_owned_cart(cart_id, user_id)

        coupon = self.repo.get_by_code(str(code))
        if not coupon:
            raise NotFoundError("Coupon")

        check_coupon_window(coupon, now or datetime.now(timezone.utc))

        items = self.carts.get_cart_items(cart.id)
        if not items:
            raise CouponRejected("empty_cart", "The cart is empty")

        subtotal = pricing.cart_subtotal(items)
        check_subtotal_bounds(coupon, subtotal)

        discount = compute_discount(coupon, subtotal)
        if discount <= 0:
            raise CouponRejected("no_discount", "This coupon gives no discount for this cart")

        try:
            rowcount = self.carts.set_coupon(cart, coupon.id, coupon.code, discount)
            if rowcount == 0:
                self.carts.rollback()
                raise ConflictError(CART_MODIFIED)
            self.carts.commit()
        except SQLAlchemyError as e:
            self.carts.rollback()
            logger.error(f"apply_coupon failed for cart {cart_id}, coupon {coupon.id}: {e}")
            raise StorageError("apply_coupon")

        logger.info(f"Coupon {coupon.code} applied to cart {cart_id}, discount {discount}")

        return {
            "coupon_code": coupon.code,
            "discount_amount": discount,
            "message": coupon.description or "Coupon applied",
        }

    def remove_coupon(self, user_id: int, cart_id: int) -> None:
        cart = self.cart_service.get_owned_cart(cart_id, user_id)

        if cart.coupon_id is None and cart.coupon_code is None and not cart.discount_amount:
            return

        try:
            rowcount = self.carts.set_coupon(cart, None, None, Decimal("0.00"))
            if rowcount == 0:
                self.carts.rollback()
                raise ConflictError(CART_MODIFIED)
            self.carts.commit()
        except SQLAlchemyError as e:
            self.carts.rollback()
            logger.error(f"remove_coupon failed for cart {cart_id}: {e}")
            raise StorageError("remove_coupon")

        logger.info(f"Coupon removed from cart {cart_id}")

    #admin side
    def list_coupons(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        return [coupon_view(c) for c in self.repo.list_coupons(include_inactive)]

    def get_coupon(self, coupon_id: int) -> Dict[str, Any]:
        coupon = self.repo.get_coupon(coupon_id)
        if not coupon:
            raise NotFoundError("Coupon")
        return coupon_view(coupon)

    def create_coupon(self, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = self._validate(
            code=data.get("code"),
            discount_type=data.get("discount_type"),
            discount_value=data.get("discount_value"),
            min_subtotal=data.get("min_subtotal"),
            max_subtotal=data.get("max_subtotal"),
            valid_from=data.get("valid_from"),
            valid_to=data.get("valid_to"),
        )

        if self.repo.get_by_code(fields["code"]):
            raise ConflictError("Coupon code already exists", {"code": fields["code"]})

        description = data.get("description")
        coupon = CouponModel(
            **fields,
            description=description.strip() or None if isinstance(description, str) else None,
            active=True if data.get("active") is None else bool(data["active"]),
        )

        created = self._save(lambda: self.repo.add_coupon(coupon), "create_coupon", fields["code"])
        logger.info(f"Coupon {created.code} created")
        return coupon_view(created)

    def update_coupon(self, coupon_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partial update. Only keys present in data are touched; the merged coupon is
        validated as a whole so bounds stay consistent.
        """
        coupon = self.repo.get_coupon(coupon_id)
        if not coupon:
            raise NotFoundError("Coupon")

        if not data:
            raise ValidationError("No changes were sent")

        def pick(key, current):
            return data[key] if key in data else current

        fields = self._validate(
            code=pick("code", coupon.code),
            discount_type=pick("discount_type", coupon.discount_type),
            discount_value=pick("discount_value", coupon.discount_value),
            min_subtotal=pick("min_subtotal", coupon.min_subtotal),
            max_subtotal=pick("max_subtotal", coupon.max_subtotal),
            valid_from=pick("valid_from", coupon.valid_from),
            valid_to=pick("valid_to", coupon.valid_to),
        )

        if fields["code"] != coupon.code:
            clash = self.repo.get_by_code(fields["code"])
            if clash and clash.id != coupon.id:
                raise ConflictError("Coupon code already exists", {"code": fields["code"]})

        def apply():
            for key, value in fields.items():
                setattr(coupon, key, value)
            if "description" in data:
                description = data["description"]
                coupon.description = description.strip() or None if isinstance(description, str) else None
            if "active" in data and data["active"] is not None:
                coupon.active = bool(data["active"])
            return coupon

        updated = self._save(apply, "update_coupon", coupon_id)
        logger.info(f"Coupon {coupon_id} updated")
        return coupon_view(updated)

    def delete_coupon(self, coupon_id: int) -> None:
        coupon = self.repo.get_coupon(coupon_id)
        if not coupon:
            raise NotFoundError("Coupon")

        if self.repo.is_referenced_by_orders(coupon_id):
            raise ConflictError("Coupon is used by existing orders and cannot be deleted", {"couponId": coupon_id})

        self._save(lambda: self.repo.delete_coupon(coupon), "delete_coupon", coupon_id)
        logger.info(f"Coupon {coupon_id} deleted")

    def _save(self, fn, operation: str, ref):
        try:
            result = fn()
            self.repo.commit()
        except IntegrityError as e:
            self.repo.rollback()
            logger.warning(f"{operation} conflict for coupon {ref}: {e}")
            if operation == "delete_coupon":
                raise ConflictError("Coupon is in use and cannot be deleted", {"couponId": ref})
            raise ConflictError("Coupon code already exists", {"code": ref})
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"{operation} failed for coupon {ref}: {e}")
            raise StorageError(operation)
        return result

    @staticmethod
    def _validate(
        code,
        discount_type,
        discount_value,
        min_subtotal,
        max_subtotal,
        valid_from,
        valid_to,
    ) -> Dict[str, Any]:
        errors: List[str] = []

        code = str(code or "").strip().upper()
        if not code:
            errors.append("code is required")

        if discount_type not in DISCOUNT_TYPES:
            errors.append("discount_type must be 'percentage' or 'fixed'")

        value = min_value = max_value = None
        try:
            value = _parse_decimal(discount_value, "discount_value")
            if value <= 0:
                errors.append("discount_value must be greater than 0")
            elif discount_type == "percentage" and value > 100:
                errors.append("percentage discount must be between 0 and 100")
        except ValidationError as e:
            errors.append(e.message)

        #null means no minimum
        if min_subtotal is None:
            min_subtotal = 0

        try:
            min_value = _parse_decimal(min_subtotal, "min_subtotal")
            if min_value < 0:
                errors.append("min_subtotal cannot be negative")
        except ValidationError as e:
            errors.append(e.message)

        if max_subtotal is not None:
            try:
                max_value = _parse_decimal(max_subtotal, "max_subtotal")
                if min_value is not None and max_value < min_value:
                    errors.append("max_subtotal cannot be lower than min_subtotal")
            except ValidationError as e:
                errors.append(e.message)

        valid_from = _as_utc(valid_from)
        valid_to = _as_utc(valid_to)
        if valid_from and valid_to and valid_from > valid_to:
            errors.append("valid_from cannot be later than valid_to")

        if errors:
            raise ValidationError("Invalid coupon", errors)

        return {
            "code": code,
            "discount_type": discount_type,
            "discount_value": value,
            "min_subtotal": min_value,
            "max_subtotal": max_value,
            "valid_from": valid_from,
            "valid_to": valid_to,
        }
