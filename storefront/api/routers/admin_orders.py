# storefront/api/routers/admin_orders.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import get_order_service
from storefront.api.security import require_admin
from storefront.domain.errors import StoreError
from storefront.domain.schemas import OrderOut, OrderStatusUpdate
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/admin/orders", tags=["admin"], dependencies=[Depends(require_admin)])


@router.put("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.update_status(order_id, payload.status)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
