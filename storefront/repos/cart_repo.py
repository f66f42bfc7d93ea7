# storefront/repos/cart_repo.py
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_items(self, cart_id: int) -> List[CartItemModel]:
        #product is joined eagerly (lazy="joined"), pricing needs sale fields
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id.desc())
            ).scalars().unique().all()
        )

    def get_cart_item(self, item_id: int) -> CartItemModel | None:
        return self.db.get(CartItemModel, item_id)

    def get_cart_item_by_product(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalars().unique().one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item_id: int) -> int:
        return self.db.execute(
            delete(CartItemModel).where(CartItemModel.id == item_id)
        ).rowcount

    def clear_cart_items(self, cart_id: int) -> int:
        return self.db.execute(
            delete(CartItemModel).where(CartItemModel.cart_id == cart_id)
        ).rowcount

    def update_cart_version(self, cart_id: int, old_version: int, new_data: Dict[str, Any]) -> int:
        """
        Optimistic locking: UPDATE carts SET ... WHERE id = :id AND version = :old.
        0 rows means someone else touched the cart since it was read.
        """
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_coupon(self, cart: CartModel, coupon_id: int | None, coupon_code: str | None, discount: Decimal) -> int:
        return self.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "coupon_id": coupon_id,
                "coupon_code": coupon_code,
                "discount_amount": discount,
                "version": cart.version + 1,
            },
        )

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
