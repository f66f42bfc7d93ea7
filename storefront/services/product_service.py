# storefront/services/product_service.py
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.errors import NotFoundError, StorageError, ValidationError
from storefront.repos.product_repo import ProductRepo
from storefront.services import pricing
from storefront.services.cart_service import product_view
from storefront.services.inventory_service import InventoryService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("name", "price", "stock", "weight", "category_id")


class ProductService:
    def __init__(self, db: Session):
        self.repo = ProductRepo(db)
        self.inventory = InventoryService(db)

    def _view(self, product: ProductModel) -> Dict[str, Any]:
        return {
            **product_view(product),
            "unit_price": pricing.unit_price(product),
            "available_stock": self.inventory.get_available_stock(product.id),
        }

    def list_products(self, category_id: int | None = None) -> List[Dict[str, Any]]:
        return [self._view(p) for p in self.repo.list_products(category_id)]

    def get_product(self, product_id: int) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Product")
        return self._view(product)

    def create_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = self._validate({"stock": 0, **data}, required=("name", "price"))
        product = ProductModel(**fields, sale_active=False)

        try:
            self.repo.add_product(product)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"create_product failed ({fields.get('name')}): {e}")
            raise StorageError("create_product")

        logger.info(f"Product {product.id} created")
        return self._view(product)

    def update_product(self, product_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Product")

        fields = self._validate(data, required=())
        if not fields:
            raise ValidationError("No changes were sent")

        try:
            for key, value in fields.items():
                setattr(product, key, value)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"update_product failed for product {product_id}: {e}")
            raise StorageError("update_product")

        logger.info(f"Product {product_id} updated: {sorted(fields)}")
        return self._view(product)

    @staticmethod
    def _validate(data: Dict[str, Any], required) -> Dict[str, Any]:
        errors: List[str] = []
        fields: Dict[str, Any] = {}

        for key in required:
            if data.get(key) is None:
                errors.append(f"{key} is required")

        if "name" in data and data["name"] is not None:
            name = str(data["name"]).strip()
            if not name:
                errors.append("name cannot be empty")
            fields["name"] = name

        if data.get("price") is not None:
            price = Decimal(str(data["price"]))
            if not price.is_finite() or price < 0:
                errors.append("price must be 0 or more")
            fields["price"] = price

        if data.get("stock") is not None:
            stock = data["stock"]
            if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
                errors.append("stock must be a non-negative integer")
            fields["stock"] = stock

        if data.get("weight") is not None:
            weight = Decimal(str(data["weight"]))
            if not weight.is_finite() or weight <= 0:
                errors.append("weight must be greater than 0")
            fields["weight"] = weight

        if "category_id" in data:
            fields["category_id"] = data["category_id"]

        if errors:
            raise ValidationError("Invalid product", errors)

        return fields
