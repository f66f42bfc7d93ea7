from sqlalchemy import Column, Integer, String, DateTime, Numeric, Boolean
from datetime import datetime, timezone

from storefront.data.database import Base

class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String, nullable=False, unique=True)  # always uppercase
    description = Column(String, nullable=True)

    discount_type = Column(String(20), nullable=False)  # percentage, fixed
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    max_subtotal = Column(Numeric(10, 2), nullable=True)

    active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_to = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
