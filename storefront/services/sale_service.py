# storefront/services/sale_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.errors import NotFoundError, StorageError, ValidationError
from storefront.repos.product_repo import ProductRepo
from storefront.services import pricing
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SCOPES = ("all", "category", "products")


class SaleService:
    """Bulk sale pricing: percentage off base price for a set of products, and its revert."""

    def __init__(self, db: Session):
        self.repo = ProductRepo(db)

    def resolve_products(
        self,
        scope: str | None,
        category_id: int | None = None,
        product_ids: Sequence[int] | None = None,
    ) -> List[ProductModel]:
        scope = scope or "all"

        if scope not in SCOPES:
            raise ValidationError("scope must be one of 'all', 'category', 'products'")

        if scope == "category":
            if category_id is None:
                raise ValidationError("categoryId is required for scope 'category'")
            products = self.repo.list_products(category_id=category_id)
        elif scope == "products":
            if not product_ids:
                raise ValidationError("productIds are required for scope 'products'")
            products = self.repo.get_products_by_ids(product_ids)
        else:
            products = self.repo.list_products()

        if not products:
            raise NotFoundError("Product", "No products match the given criteria")

        return products

    def apply_sale(
        self,
        admin_id: int,
        percentage: Any,
        scope: str | None = "all",
        category_id: int | None = None,
        product_ids: Sequence[int] | None = None,
    ) -> int:
        percentage = self._validate_percentage(percentage)
        products = self.resolve_products(scope, category_id, product_ids)
        now = datetime.now(timezone.utc)

        try:
            for product in products:
                product.sale_price = pricing.sale_price_for(product.price, percentage)
                product.sale_active = True
                product.sale_percentage = percentage
                product.sale_applied_at = now
                product.sale_applied_by = admin_id
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"apply_sale failed (scope {scope}, {len(products)} products): {e}")
            raise StorageError("apply_sale")

        logger.info(f"Sale of {percentage}% applied to {len(products)} product(s) by user {admin_id}")
        return len(products)

    def revert_sale(
        self,
        scope: str | None = "all",
        category_id: int | None = None,
        product_ids: Sequence[int] | None = None,
    ) -> int:
        products = self.resolve_products(scope, category_id, product_ids)

        try:
            for product in products:
                product.sale_price = None
                product.sale_active = False
                product.sale_percentage = None
                product.sale_applied_at = None
                product.sale_applied_by = None
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"revert_sale failed (scope {scope}, {len(products)} products): {e}")
            raise StorageError("revert_sale")

        logger.info(f"Sale reverted on {len(products)} product(s)")
        return len(products)

    @staticmethod
    def _validate_percentage(percentage: Any) -> Decimal:
        if percentage is None or isinstance(percentage, bool):
            raise ValidationError("percentage must be greater than 0 and lower than 100")
        try:
            value = Decimal(str(percentage))
        except ArithmeticError:
            raise ValidationError("percentage must be greater than 0 and lower than 100")
        if not value.is_finite() or value <= 0 or value >= 100:
            raise ValidationError("percentage must be greater than 0 and lower than 100")
        return value
