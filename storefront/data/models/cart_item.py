import json

from sqlalchemy import Column, Integer, ForeignKey, Numeric, String, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def color_key(colors) -> str:
    """Kanoniczna postac zestawu kolorow, czesc klucza pozycji koszyka."""
    # json, zeby ["a,b"] i ["a", "b"] byly roznymi kluczami
    return json.dumps(sorted(colors or []))


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=False)

    # snapshot produktu z chwili dodania
    name = Column(String, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    price = Column(Numeric(12, 2), nullable=False)

    selected_size = Column(String, nullable=False)
    selected_colors = Column(JSON, nullable=False, default=list)
    color_key = Column(String, nullable=False, default="[]")

    quantity = Column(Integer, nullable=False)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "selected_size", "color_key", name="u_cart_line"),
    )
