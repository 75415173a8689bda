# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from storefront.domain.order_status import OrderStatus


# =====================================================
# CART
# =====================================================
class CartItemKey(BaseModel):
    """Klucz pozycji koszyka: (produkt, rozmiar, zestaw kolorow)."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    selected_size: str = Field(..., min_length=1)
    selected_colors: List[str] = Field(default_factory=list)


class CartItemIn(CartItemKey):
    """Schema dla dodawania produktu do koszyka."""

    quantity: int = Field(..., gt=0, description="Ilość produktu (musi być > 0)")


class CartItemUpdate(CartItemKey):
    quantity: int = Field(..., gt=0)


class CartItemOut(BaseModel):
    product_id: int
    name: str
    images: List[str]
    price: Decimal
    selected_size: str
    selected_colors: List[str]
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: Optional[int] = None
    user_id: int
    items: List[CartItemOut]
    total_quantity: int
    total_price: Decimal


# =====================================================
# ORDER
# =====================================================
class ShippingAddress(BaseModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class OrderItemIn(BaseModel):
    """Snapshot pozycji przeslany przez klienta przy skladaniu zamowienia."""

    product_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1)
    images: List[str] = Field(default_factory=list)
    price: Decimal = Field(..., ge=0)
    selected_size: str = Field(..., min_length=1)
    selected_colors: List[str] = Field(default_factory=list)
    quantity: int = Field(..., gt=0)


class OrderCreate(BaseModel):
    """Schema dla tworzenia zamówienia."""

    order_items: List[OrderItemIn]
    shipping_address: ShippingAddress
    payment_method: str = Field(..., min_length=1)
    tax_price: Decimal = Field(Decimal("0"), ge=0)
    shipping_price: Decimal = Field(Decimal("0"), ge=0)
    total_price: Decimal = Field(..., ge=0)


class OrderItemOut(BaseModel):
    product_id: int
    name: str
    images: List[str]
    price: Decimal
    selected_size: str
    selected_colors: List[str]
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class PaymentResultOut(BaseModel):
    id: Optional[str] = None
    reference: Optional[str] = None
    status: Optional[str] = None
    channel: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    email_address: Optional[str] = None
    gateway_timestamp: Optional[str] = None


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    user_id: int
    order_items: List[OrderItemOut]
    shipping_address: ShippingAddress
    payment_method: str
    payment_result: Optional[PaymentResultOut] = None
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal
    currency: str
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    status: OrderStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


# =====================================================
# PAYMENTS
# =====================================================
class PaymentInitIn(BaseModel):
    order_id: int = Field(..., gt=0)


class PaymentInitOut(BaseModel):
    status: str
    link: str
    tx_ref: str


class PaymentVerifyOut(BaseModel):
    message: str
    order: OrderOut


class GatewayTransaction(BaseModel):
    """Stan transakcji wg bramki (zrodlo prawdy)."""

    id: Optional[str] = None
    reference: str
    status: str
    amount: Decimal
    currency: str
    channel: Optional[str] = None
    payer_email: Optional[str] = None
    gateway_timestamp: Optional[str] = None
    metadata: dict = Field(default_factory=dict)
