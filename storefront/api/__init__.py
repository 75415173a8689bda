# storefront/api/__init__.py
from fastapi import APIRouter

from storefront.api.routers import admin_orders, carts, health, orders, payments

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(carts.router)
api_router.include_router(orders.router)
api_router.include_router(payments.router)
api_router.include_router(admin_orders.router)
