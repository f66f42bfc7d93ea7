#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import CurrentUser, get_current_user
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import (
    CartItemIn,
    CartItemQuantityIn,
    CartItemResult,
    CartRefIn,
    CartSnapshotOut,
    CartStockOut,
    SuccessOut,
)
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


@router.get("", response_model=CartSnapshotOut)
def get_cart(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    return svc.get_cart_snapshot(user.id)


@router.post("/items", response_model=CartItemResult)
def add_item(
    payload: CartItemIn,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        item = svc.add_item(user.id, payload.product_id, payload.quantity)
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True, "item": item}


@router.patch("/items/{item_id}", response_model=CartItemResult)
def update_item(
    item_id: int,
    payload: CartItemQuantityIn,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        item = svc.update_item_quantity(user.id, item_id, payload.quantity)
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True, "item": item}


@router.delete("/items/{item_id}", response_model=SuccessOut)
def remove_item(
    item_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        svc.remove_item(user.id, item_id)
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True}


@router.post("/validate-stock", response_model=CartStockOut)
def validate_stock(
    payload: CartRefIn,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        result = svc.validate_cart_stock(user.id, payload.cart_id)
    except StorefrontError as e:
        raise to_http(e)
    return {"valid": result.valid, "issues": [i.as_dict() for i in result.issues]}
