#storefront/api/routers/products.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import CurrentUser, require_admin
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import CatalogProductOut, ProductIn
from storefront.services.product_service import ProductService

router = APIRouter(tags=["products"])


@router.get("/products", response_model=List[CatalogProductOut])
def list_products(
    category_id: int | None = Query(None, alias="categoryId"),
    db: Session = Depends(get_db),
):
    return ProductService(db).list_products(category_id)


@router.get("/products/{product_id}", response_model=CatalogProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    try:
        return ProductService(db).get_product(product_id)
    except StorefrontError as e:
        raise to_http(e)


@router.post("/admin/products", response_model=CatalogProductOut, status_code=201)
def create_product(
    payload: ProductIn,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return ProductService(db).create_product(payload.model_dump(exclude_unset=True))
    except StorefrontError as e:
        raise to_http(e)


@router.patch("/admin/products/{product_id}", response_model=CatalogProductOut)
def update_product(
    product_id: int,
    payload: ProductIn,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return ProductService(db).update_product(product_id, payload.model_dump(exclude_unset=True))
    except StorefrontError as e:
        raise to_http(e)
