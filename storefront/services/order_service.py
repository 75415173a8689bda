# storefront/services/order_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.errors import (
    ConcurrentModification,
    EmptyOrder,
    InvalidStatusTransition,
    NotOwner,
    OrderNotFound,
    TotalMismatch,
)
from storefront.domain.order_status import OrderStatus, PAYMENT_ONLY_TARGETS, can_transition
from storefront.domain.schemas import OrderCreate
from storefront.domain.users import Principal
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.notification_service import NotificationService
from storefront.utils.settings import PAYMENT_CURRENCY, STRICT_ORDER_TOTALS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "order_items": [
            {
                "product_id": i.product_id,
                "name": i.name,
                "images": list(i.images or []),
                "price": i.price,
                "selected_size": i.selected_size,
                "selected_colors": list(i.selected_colors or []),
                "quantity": i.quantity,
            }
            for i in order.order_items
        ],
        "shipping_address": dict(order.shipping_address),
        "payment_method": order.payment_method,
        "payment_result": dict(order.payment_result) if order.payment_result else None,
        "tax_price": order.tax_price,
        "shipping_price": order.shipping_price,
        "total_price": order.total_price,
        "currency": order.currency,
        "is_paid": order.is_paid,
        "paid_at": order.paid_at,
        "is_delivered": order.is_delivered,
        "delivered_at": order.delivered_at,
        "status": order.status,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


class OrderService:
    """
    Serwis odpowiedzialny za domenę zamówień.
    Zamowienie po utworzeniu jest zamrozone, zmieniaja sie tylko pola platnosci i realizacji.
    """

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService,
        currency: str = PAYMENT_CURRENCY,
        strict_totals: bool = STRICT_ORDER_TOTALS,
    ):
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.user_repo = UserRepo(db)
        self.notification_service = notification_service
        self.currency = currency.upper()
        self.strict_totals = strict_totals

    def create_order(self, user_id: int, payload: OrderCreate) -> Dict[str, Any]:
        """
        Use Case: Tworzenie zamówienia z koszyka.

        1. Odrzuca pusta liste pozycji (EmptyOrder)
        2. Sprawdza spojnosc sum podanych przez klienta
        3. Zapisuje zamowienie (pending, nieoplacone) i usuwa koszyk w jednej transakcji
        4. Wysyła powiadomienie (async)
        """
        if not payload.order_items:
            raise EmptyOrder()

        if self.strict_totals:
            self._check_totals(payload)

        now = datetime.now(timezone.utc)
        order = OrderModel(
            user_id=user_id,
            order_items=[
                OrderItemModel(
                    product_id=i.product_id,
                    name=i.name,
                    images=list(i.images),
                    price=i.price,
                    selected_size=i.selected_size,
                    selected_colors=sorted(i.selected_colors),
                    quantity=i.quantity,
                )
                for i in payload.order_items
            ],
            shipping_address=payload.shipping_address.model_dump(),
            payment_method=payload.payment_method,
            tax_price=payload.tax_price,
            shipping_price=payload.shipping_price,
            total_price=payload.total_price,
            currency=self.currency,
            is_paid=False,
            paid_at=None,
            is_delivered=False,
            status=OrderStatus.PENDING.value,
            version=1,
            created_at=now,
            updated_at=now,
        )

        # zamowienie i usuniecie koszyka - jedna transakcja
        try:
            self.repo.add_order(order)
            cart = self.cart_repo.get_cart_by_user(user_id)
            if cart:
                self.cart_repo.delete_cart(cart)
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            logger.exception(
                f"Order creation for user {user_id} failed, order insert and cart delete rolled back"
            )
            raise

        logger.info(f"Order {order.id} created for user {user_id}, cart removed")

        result = order_to_dict(order)
        self._notify_placed(user_id, result)
        return result

    def get_user_orders(self, user_id: int) -> List[Dict[str, Any]]:
        return [order_to_dict(o) for o in self.repo.list_user_orders(user_id)]

    def get_order(self, order_id: int, principal: Principal) -> Dict[str, Any]:
        """
        Use Case: Pobranie zamówienia (Query). Wlasciciel albo admin.
        """
        order = self.repo.get_order(order_id)

        if not order:
            raise OrderNotFound()

        if not principal.can_view(order.user_id):
            raise NotOwner("Not authorized to view this order")

        return order_to_dict(order)

    def update_status(self, order_id: int, new_status: OrderStatus | str) -> Dict[str, Any]:
        """
        Use Case: Administracyjna zmiana statusu (shipped, delivered, cancelled, refunded).
        """
        order = self.repo.get_order(order_id)
        if not order:
            raise OrderNotFound()

        target = OrderStatus(new_status)
        current = order.status

        if target in PAYMENT_ONLY_TARGETS or not can_transition(current, target):
            raise InvalidStatusTransition(f"Cannot move order from {current} to {target.value}")

        new_data = {"status": target.value}
        if target is OrderStatus.DELIVERED:
            new_data["is_delivered"] = True
            new_data["delivered_at"] = datetime.now(timezone.utc)

        rowcount = self.repo.update_status(order.id, expected_status=current, new_data=new_data)
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModification()

        self.repo.commit()
        order = self.repo.refresh(order)

        logger.info(f"Order {order.id} status changed {current} -> {target.value}")
        return order_to_dict(order)

    @staticmethod
    def _check_totals(payload: OrderCreate) -> None:
        items_total = sum((i.price * i.quantity for i in payload.order_items), Decimal("0"))
        expected = (items_total + payload.tax_price + payload.shipping_price).quantize(CENT)
        declared = payload.total_price.quantize(CENT)

        if expected != declared:
            logger.warning(f"Declared order total {declared} does not match computed {expected}")
            raise TotalMismatch(
                f"Order total {declared} does not match items, tax and shipping ({expected})"
            )

    def _notify_placed(self, user_id: int, order: Dict[str, Any]) -> None:
        user = self.user_repo.get_user(user_id)
        if not user:
            logger.warning(f"User {user_id} not found, order {order['id']} confirmation not sent")
            return
        self.notification_service.send_order_placed(order, user.email, user.name)
