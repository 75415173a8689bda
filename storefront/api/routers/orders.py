# storefront/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import get_order_service
from storefront.api.security import get_current_user
from storefront.domain.errors import StoreError
from storefront.domain.schemas import OrderCreate, OrderOut
from storefront.domain.users import Principal
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user: Principal = Depends(get_current_user),
    svc: OrderService = Depends(get_order_service),
):
    """
    Tworzy zamówienie (pending, nieoplacone) i usuwa koszyk uzytkownika.
    Wysyła powiadomienie asynchronicznie.
    """
    try:
        return svc.create_order(user.id, payload)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/mine", response_model=List[OrderOut])
def get_my_orders(
    user: Principal = Depends(get_current_user),
    svc: OrderService = Depends(get_order_service),
):
    return svc.get_user_orders(user.id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user: Principal = Depends(get_current_user),
    svc: OrderService = Depends(get_order_service),
):
    """
    Pobiera szczegóły zamówienia.
    """
    try:
        return svc.get_order(order_id, user)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
