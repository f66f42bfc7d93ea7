# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List
from decimal import Decimal
from datetime import datetime


class CamelModel(BaseModel):
    """JSON in/out uses camelCase, python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# cart

class CartItemIn(CamelModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., description="Product id")
    quantity: int = Field(1, description="Units to add on top of what is already in the cart")


class CartItemQuantityIn(CamelModel):
    quantity: int = Field(..., description="New quantity of the line (> 0)")


class CartItemOut(CamelModel):
    id: int
    cart_id: int
    product_id: int
    quantity: int


class CartItemResult(CamelModel):
    success: bool = True
    item: CartItemOut


class SuccessOut(CamelModel):
    success: bool = True


class ProductOut(CamelModel):
    id: int
    name: str
    category_id: int | None = None
    price: Decimal
    stock: int
    weight: Decimal | None = None
    sale_active: bool
    sale_price: Decimal | None = None
    sale_percentage: Decimal | None = None


class CatalogProductOut(ProductOut):
    unit_price: Decimal
    available_stock: int


class CartLineOut(CartItemOut):
    unit_price: Decimal
    line_total: Decimal
    product: ProductOut


class CartSnapshotOut(CamelModel):
    cart_id: int | None
    items: List[CartLineOut]
    subtotal: Decimal
    discount: Decimal
    coupon_code: str | None = None
    item_count: int


class CartRefIn(CamelModel):
    cart_id: int


class StockIssueOut(CamelModel):
    product_id: int
    product_name: str
    requested: int
    available: int


class CartStockOut(CamelModel):
    valid: bool
    issues: List[StockIssueOut]


# coupons

class CouponApplyIn(CamelModel):
    code: str | None = None
    cart_id: int


class CouponApplyOut(CamelModel):
    coupon_code: str
    discount_amount: Decimal
    message: str


class CouponIn(CamelModel):
    """Schema for creating a coupon; the service validates the business rules."""

    code: str | None = None
    description: str | None = None
    discount_type: str | None = None
    discount_value: Decimal | None = None
    min_subtotal: Decimal | None = None
    max_subtotal: Decimal | None = None
    active: bool | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None


class CouponPatch(CouponIn):
    """Same fields as CouponIn; only the ones sent are changed."""


class CouponOut(CamelModel):
    id: int
    code: str
    description: str | None = None
    discount_type: str
    discount_value: Decimal
    min_subtotal: Decimal
    max_subtotal: Decimal | None = None
    active: bool
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    created_at: datetime | None = None


class CouponListOut(CamelModel):
    coupons: List[CouponOut]


# sales

class BulkSaleIn(CamelModel):
    scope: str | None = "all"
    category_id: int | None = None
    product_ids: List[int] | None = None
    percentage: Decimal | None = None


class BulkSaleOut(CamelModel):
    success: bool = True
    updated: int


# products (admin)

class ProductIn(CamelModel):
    name: str | None = None
    price: Decimal | None = None
    stock: int | None = None
    weight: Decimal | None = None
    category_id: int | None = None


# orders

class OrderCreate(CamelModel):
    """Schema for placing an order from a cart."""

    cart_id: int
    full_name: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    phone: str | None = None


class ShippingOut(CamelModel):
    total_weight: Decimal
    boxes: int
    cost: Decimal
    is_free: bool
    details: str


class OrderPlacedOut(CamelModel):
    order_id: int
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    shipping: ShippingOut
    handoff_destination: str
    handoff_message: str
    handoff_url: str


class OrderItemOut(CamelModel):
    product_id: int
    product_name: str
    quantity: int
    price: Decimal
    line_total: Decimal


class OrderOut(CamelModel):
    id: int
    user_id: int
    status: str
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    shipping_weight: Decimal
    shipping_boxes: int
    shipping_name: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: str
    shipping_phone: str
    coupon_id: int | None = None
    coupon_code: str | None = None
    created_at: datetime
    items: List[OrderItemOut]


class OrderStatusIn(CamelModel):
    status: str | None = None
