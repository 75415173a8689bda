# storefront/repos/order_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.order_status import OrderStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def list_user_orders(self, user_id: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def mark_paid(self, order_id: int, payment_result: dict, paid_at: datetime) -> int:
        """
        Warunkowy zapis platnosci: pola platnosci i status zmieniaja sie jednym
        UPDATE i tylko jesli zamowienie nie jest jeszcze oplacone.
        Zwraca liczbe zmienionych wierszy (0 = ktos byl pierwszy).
        """
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.is_paid.is_(False),
                OrderModel.status == OrderStatus.PENDING.value,
            )
            .values(
                is_paid=True,
                paid_at=paid_at,
                payment_result=payment_result,
                status=OrderStatus.PROCESSING.value,
                version=OrderModel.version + 1,
                updated_at=paid_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def update_status(self, order_id: int, expected_status: str, new_data: dict) -> int:
        new_data = {**new_data, "updated_at": datetime.now(timezone.utc)}
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected_status)
            .values(version=OrderModel.version + 1, **new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def refresh(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order
