from sqlalchemy import Column, Integer, String
from storefront.data.database import Base

CUSTOMER_ROLE = "customer"
ADMIN_ROLE = "admin"


class UserModel(Base):
    """Identity mirror; accounts are managed upstream, this table only answers 'who' and 'which role'."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=CUSTOMER_ROLE)
