from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List

import requests
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel, color_key
from storefront.domain.errors import (
    CartNotFound,
    CatalogUnavailable,
    ConcurrentModification,
    InvalidInput,
    ItemNotFound,
    ProductNotFound,
)
from storefront.repos.cart_repo import CartRepo
from storefront.services.product_client import ProductClient
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Prosta implementacja cqrs dla domeny cart
    commands (add, update, remove, clear) modyfikuja stan
    query (get) tylko odczyt

    Pozycje identyfikuje klucz (product_id, selected_size, posortowane kolory).
    """

    def __init__(self, db: Session, product_client: ProductClient):
        self.repo = CartRepo(db)
        self.product_client = product_client

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)

        # brak koszyka to pusty widok, niczego nie zapisujemy
        if not cart:
            return self._empty_view(user_id)

        return self._to_dict(cart)

    #commands
    def add_product(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        selected_size: str,
        selected_colors: List[str] | None = None,
    ) -> Dict[str, Any]:
        self._validate_quantity(quantity)
        if not selected_size:
            raise InvalidInput("Please provide productId, quantity, and selectedSize")

        pdata = self._fetch_product(product_id)
        cart = self._get_or_create_cart(user_id)

        existing_item = self.repo.find_item(cart.id, product_id, selected_size, selected_colors)

        if existing_item:
            logger.info(
                f"Produkt {product_id} ({selected_size}) juz jest w koszyku, zwiekszam ilosc "
                f"z {existing_item.quantity} do {existing_item.quantity + quantity}"
            )
            existing_item.quantity += quantity
        else:
            logger.info(f"Dodaje nowy produkt {product_id} ({selected_size}) do koszyka {cart.id}")
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product_id,
                    name=pdata["name"],
                    images=list(pdata.get("images") or []),
                    price=Decimal(str(pdata["price"])),
                    selected_size=selected_size,
                    selected_colors=sorted(selected_colors or []),
                    color_key=color_key(selected_colors),
                    quantity=quantity,
                )
            )

        return self._save(cart)

    def update_quantity(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        selected_size: str,
        selected_colors: List[str] | None = None,
    ) -> Dict[str, Any]:
        # 0 to nie usuniecie, do tego jest remove
        self._validate_quantity(quantity)

        cart = self._require_cart(user_id)
        item = self._require_item(cart, product_id, selected_size, selected_colors)

        logger.info(f"Zmiana ilosci produktu {product_id} w koszyku {cart.id}: {item.quantity} -> {quantity}")
        item.quantity = quantity

        return self._save(cart)

    def remove_product(
        self,
        user_id: int,
        product_id: int,
        selected_size: str,
        selected_colors: List[str] | None = None,
    ) -> Dict[str, Any]:
        cart = self._require_cart(user_id)
        item = self._require_item(cart, product_id, selected_size, selected_colors)

        logger.info(f"Usuwanie produktu {product_id} ({selected_size}) z koszyka {cart.id}")
        self.repo.delete_cart_item(item)

        return self._save(cart)

    def clear_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self._require_cart(user_id)

        logger.info(f"Czyszczenie koszyka {cart.id}")
        self.repo.clear_items(cart.id)

        return self._save(cart)

    # =====================================================
    # helpers
    # =====================================================
    @staticmethod
    def _validate_quantity(quantity: int) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise InvalidInput("Quantity must be a positive integer")

    def _fetch_product(self, product_id: int) -> dict:
        logger.info(f"Pobieranie danych produktu {product_id} z product-service")
        try:
            pdata = self.product_client.fetch_product(product_id)
        except requests.RequestException as e:
            logger.error(f"Product service error for product {product_id}: {e}")
            raise CatalogUnavailable() from e

        if not pdata:
            raise ProductNotFound()
        return pdata

    def _get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            return cart

        now = datetime.now(timezone.utc)
        try:
            cart = self.repo.create_cart(
                CartModel(user_id=user_id, version=1, created_at=now, updated_at=now)
            )
        except IntegrityError:
            # rownolegle zadanie utworzylo koszyk pierwsze
            self.repo.rollback()
            cart = self.repo.get_cart_by_user(user_id)
            if not cart:
                raise ConcurrentModification()
            return cart

        logger.info(f"Utworzono nowy koszyk {cart.id} dla uzytkownika {user_id}")
        return cart

    def _require_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if not cart:
            raise CartNotFound()
        return cart

    def _require_item(
        self,
        cart: CartModel,
        product_id: int,
        selected_size: str,
        selected_colors: List[str] | None,
    ) -> CartItemModel:
        item = self.repo.find_item(cart.id, product_id, selected_size, selected_colors)
        if not item:
            raise ItemNotFound()
        return item

    def _save(self, cart: CartModel) -> Dict[str, Any]:
        # Optimistic locking
        # np w bazie update set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModification()

        try:
            self.repo.commit()
        except IntegrityError as e:
            # ta sama pozycja dodana rownolegle
            self.repo.rollback()
            raise ConcurrentModification() from e

        cart = self.repo.refresh(cart)
        logger.info(f"Koszyk {cart.id} zapisany, nowa wersja: {cart.version}")
        return self._to_dict(cart)

    @staticmethod
    def _empty_view(user_id: int) -> Dict[str, Any]:
        return {
            "cart_id": None,
            "user_id": user_id,
            "items": [],
            "total_quantity": 0,
            "total_price": Decimal("0.00"),
        }

    @staticmethod
    def _to_dict(cart: CartModel) -> Dict[str, Any]:
        items = cart.items
        #dict przyksztalcany w jsona
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": [
                {
                    "product_id": i.product_id,
                    "name": i.name,
                    "images": list(i.images or []),
                    "price": i.price,
                    "selected_size": i.selected_size,
                    "selected_colors": list(i.selected_colors or []),
                    "quantity": i.quantity,
                }
                for i in items
            ],
            "total_quantity": sum(i.quantity for i in items),
            "total_price": sum((Decimal(str(i.price)) * i.quantity for i in items), Decimal("0.00")),
        }
