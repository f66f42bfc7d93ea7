#storefront/api/routers/coupons.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import CurrentUser, get_current_user, require_admin
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import (
    CartRefIn,
    CouponApplyIn,
    CouponApplyOut,
    CouponIn,
    CouponListOut,
    CouponOut,
    CouponPatch,
    SuccessOut,
)
from storefront.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["coupons"])


def get_service(db: Session):
    return CouponService(db)


#/apply is registered before /{coupon_id} so DELETE /coupons/apply is not taken for an id
@router.post("/apply", response_model=CouponApplyOut)
def apply_coupon(
    payload: CouponApplyIn,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.apply_coupon(user.id, payload.cart_id, payload.code)
    except StorefrontError as e:
        raise to_http(e)


@router.delete("/apply", response_model=SuccessOut)
def remove_coupon(
    payload: CartRefIn,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        svc.remove_coupon(user.id, payload.cart_id)
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True}


#admin
@router.get("", response_model=CouponListOut)
def list_coupons(
    include_inactive: bool = Query(False, alias="includeInactive"),
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    return {"coupons": svc.list_coupons(include_inactive)}


@router.post("", response_model=CouponOut, status_code=201)
def create_coupon(
    payload: CouponIn,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.create_coupon(payload.model_dump())
    except StorefrontError as e:
        raise to_http(e)


@router.get("/{coupon_id}", response_model=CouponOut)
def get_coupon(
    coupon_id: int,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.get_coupon(coupon_id)
    except StorefrontError as e:
        raise to_http(e)


@router.patch("/{coupon_id}", response_model=CouponOut)
def update_coupon(
    coupon_id: int,
    payload: CouponPatch,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.update_coupon(coupon_id, payload.model_dump(exclude_unset=True))
    except StorefrontError as e:
        raise to_http(e)


@router.delete("/{coupon_id}", response_model=SuccessOut)
def delete_coupon(
    coupon_id: int,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        svc.delete_coupon(coupon_id)
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True}
