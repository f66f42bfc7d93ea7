#storefront/data/models/product.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)

    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)  # on hand, only orders decrement it
    weight = Column(Numeric(10, 3), nullable=True)  # kg

    sale_active = Column(Boolean, nullable=False, default=False)
    sale_price = Column(Numeric(10, 2), nullable=True)
    sale_percentage = Column(Numeric(5, 2), nullable=True)
    sale_applied_at = Column(DateTime(timezone=True), nullable=True)
    sale_applied_by = Column(Integer, ForeignKey("users.id"), nullable=True)
