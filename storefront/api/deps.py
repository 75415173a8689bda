# storefront/api/deps.py
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.services.cart_service import CartService
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import FlutterwaveGateway
from storefront.services.payment_service import PaymentService
from storefront.services.product_client import ProductClient
from storefront.utils.settings import PaymentConfig


@lru_cache
def get_payment_config() -> PaymentConfig:
    return PaymentConfig.from_settings()


@lru_cache
def get_lock_service() -> LockService:
    return LockService()


def get_product_client() -> ProductClient:
    return ProductClient()


def get_payment_gateway(config: PaymentConfig = Depends(get_payment_config)) -> FlutterwaveGateway:
    return FlutterwaveGateway(config)


def get_notification_service() -> NotificationService:
    return NotificationService()


def get_cart_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
) -> CartService:
    return CartService(db=db, product_client=product_client)


def get_order_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
    config: PaymentConfig = Depends(get_payment_config),
) -> OrderService:
    return OrderService(db=db, notification_service=notification_service, currency=config.currency)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: FlutterwaveGateway = Depends(get_payment_gateway),
    lock_service: LockService = Depends(get_lock_service),
    notification_service: NotificationService = Depends(get_notification_service),
    config: PaymentConfig = Depends(get_payment_config),
) -> PaymentService:
    return PaymentService(
        db=db,
        gateway=gateway,
        lock_service=lock_service,
        notification_service=notification_service,
        config=config,
    )
