from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, JSON
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)

    name = Column(String, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    price = Column(Numeric(12, 2), nullable=False)
    selected_size = Column(String, nullable=False)
    selected_colors = Column(JSON, nullable=False, default=list)
    quantity = Column(Integer, nullable=False)

    order = relationship("OrderModel", back_populates="order_items")
