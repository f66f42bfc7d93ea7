# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from storefront.api.deps import CurrentUser, get_current_user, get_idempotency_service, require_admin
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import OrderCreate, OrderOut, OrderPlacedOut, OrderStatusIn
from storefront.services.idempotency_service import IdempotencyService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


def get_service(db: Session, idempotency: IdempotencyService | None = None):
    return OrderService(db, idempotency=idempotency)


@router.post("", response_model=OrderPlacedOut)
def place_order(
    payload: OrderCreate,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    idempotency: IdempotencyService = Depends(get_idempotency_service),
):
    """
    Places an order from the caller's cart and returns the handoff message.
    Shipping cost is not charged here, it is arranged over the handoff channel.
    """
    svc = get_service(db, idempotency)
    try:
        return svc.place_order(
            user_id=user.id,
            cart_id=payload.cart_id,
            full_name=payload.full_name,
            address=payload.address,
            city=payload.city,
            postal_code=payload.postal_code,
            phone=payload.phone,
            idempotency_key=idempotency_key,
        )
    except StorefrontError as e:
        raise to_http(e)


@router.get("", response_model=List[OrderOut])
def list_my_orders(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return get_service(db).list_user_orders(user.id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.get_order(order_id, user.id, is_admin=user.is_admin)
    except StorefrontError as e:
        raise to_http(e)


@admin_router.get("", response_model=List[OrderOut])
def list_orders(
    status: str | None = Query(None),
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return get_service(db).list_orders(status)
    except StorefrontError as e:
        raise to_http(e)


@admin_router.patch("/{order_id}", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusIn,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    try:
        return svc.update_status(order_id, payload.status)
    except StorefrontError as e:
        raise to_http(e)
