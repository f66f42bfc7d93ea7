# storefront/repos/product_repo.py
from typing import List, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def list_products(self, category_id: int | None = None) -> List[ProductModel]:
        stmt = select(ProductModel).order_by(ProductModel.id)
        if category_id is not None:
            stmt = stmt.where(ProductModel.category_id == category_id)
        return list(self.db.execute(stmt).scalars().all())

    def get_products_by_ids(self, product_ids: Sequence[int]) -> List[ProductModel]:
        stmt = select(ProductModel).where(ProductModel.id.in_(list(product_ids))).order_by(ProductModel.id)
        return list(self.db.execute(stmt).scalars().all())

    def get_stock(self, product_id: int) -> int | None:
        return self.db.execute(
            select(ProductModel.stock).where(ProductModel.id == product_id)
        ).scalar_one_or_none()

    def reserved_quantity(self, product_id: int, exclude_cart_id: int | None = None) -> int:
        """Units of the product sitting in carts, optionally ignoring one cart."""
        stmt = select(func.coalesce(func.sum(CartItemModel.quantity), 0)).where(
            CartItemModel.product_id == product_id
        )
        if exclude_cart_id is not None:
            stmt = stmt.where(CartItemModel.cart_id != exclude_cart_id)
        return int(self.db.execute(stmt).scalar_one())

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        #single statement, floor at 0 - concurrent decrements never lose an update
        #UPDATE products SET stock = CASE WHEN stock > :q THEN stock - :q ELSE 0 END WHERE id = :id
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(
                stock=case(
                    (ProductModel.stock > quantity, ProductModel.stock - quantity),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def add_product(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.flush()
        return product

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
