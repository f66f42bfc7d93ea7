#storefront/api/routers/sales.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import CurrentUser, require_admin
from storefront.api.errors import to_http
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import BulkSaleIn, BulkSaleOut
from storefront.services.sale_service import SaleService

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("/bulk", response_model=BulkSaleOut)
def apply_bulk_sale(
    payload: BulkSaleIn,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = SaleService(db)
    try:
        updated = svc.apply_sale(
            admin_id=admin.id,
            percentage=payload.percentage,
            scope=payload.scope,
            category_id=payload.category_id,
            product_ids=payload.product_ids,
        )
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True, "updated": updated}


@router.delete("/bulk", response_model=BulkSaleOut)
def revert_bulk_sale(
    payload: BulkSaleIn,
    admin: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    svc = SaleService(db)
    try:
        updated = svc.revert_sale(
            scope=payload.scope,
            category_id=payload.category_id,
            product_ids=payload.product_ids,
        )
    except StorefrontError as e:
        raise to_http(e)
    return {"success": True, "updated": updated}
