# storefront/repos/coupon_repo.py
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront.data.models.coupon import CouponModel
from storefront.data.models.order import OrderModel


class CouponRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_coupon(self, coupon_id: int) -> CouponModel | None:
        return self.db.get(CouponModel, coupon_id)

    def get_by_code(self, code: str) -> CouponModel | None:
        #case-insensitive exact match
        return self.db.execute(
            select(CouponModel).where(func.upper(CouponModel.code) == code.strip().upper())
        ).scalar_one_or_none()

    def list_coupons(self, include_inactive: bool = False) -> List[CouponModel]:
        stmt = select(CouponModel).order_by(CouponModel.created_at.desc(), CouponModel.id.desc())
        if not include_inactive:
            stmt = stmt.where(CouponModel.active.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def is_referenced_by_orders(self, coupon_id: int) -> bool:
        return self.db.execute(
            select(OrderModel.id).where(OrderModel.coupon_id == coupon_id).limit(1)
        ).first() is not None

    def add_coupon(self, coupon: CouponModel) -> CouponModel:
        self.db.add(coupon)
        self.db.flush()
        return coupon

    def delete_coupon(self, coupon: CouponModel):
        self.db.delete(coupon)
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
