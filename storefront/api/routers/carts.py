#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api.deps import get_cart_service
from storefront.api.security import get_current_user
from storefront.domain.errors import StoreError
from storefront.domain.schemas import CartItemIn, CartItemKey, CartItemUpdate, CartOut
from storefront.domain.users import Principal
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    user: Principal = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    return svc.get_cart(user.id)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    user: Principal = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.add_product(
            user_id=user.id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            selected_size=payload.selected_size,
            selected_colors=payload.selected_colors,
        )
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.put("/items", response_model=CartOut)
def update_item(
    payload: CartItemUpdate,
    user: Principal = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_quantity(
            user_id=user.id,
            product_id=payload.product_id,
            quantity=payload.quantity,
            selected_size=payload.selected_size,
            selected_colors=payload.selected_colors,
        )
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/items", response_model=CartOut)
def remove_item(
    payload: CartItemKey,
    user: Principal = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.remove_product(
            user_id=user.id,
            product_id=payload.product_id,
            selected_size=payload.selected_size,
            selected_colors=payload.selected_colors,
        )
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("", response_model=CartOut)
def clear_cart(
    user: Principal = Depends(get_current_user),
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.clear_cart(user.id)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
