import os

# baza w pamieci, zanim zaimportujemy storefront
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRICT_ORDER_TOTALS"] = "true"
os.environ["PAYMENT_CURRENCY"] = "NGN"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.api import deps
from storefront.api.security import create_access_token
from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import UserModel
from storefront.domain.errors import GatewayVerificationFailed
from storefront.domain.schemas import GatewayTransaction, OrderCreate
from storefront.domain.users import UserRole
from storefront.main import app
from storefront.services.order_service import OrderService
from storefront.utils.settings import PaymentConfig

WEBHOOK_SECRET = "whsec_test_secret"

TEST_CONFIG = PaymentConfig(
    secret_key="sk_test",
    webhook_secret_hash=WEBHOOK_SECRET,
    base_url="https://gateway.test/v3",
    currency="NGN",
    reference_prefix="STOREFRONT",
    redirect_base_url="http://shop.test",
    timeout=1.0,
    lock_ttl=5,
)

CUSTOMER_ID = 1
OTHER_ID = 2
ADMIN_ID = 3


class FakeProductClient:
    def __init__(self):
        self.products = {
            1: {"id": 1, "name": "Linen Kaftan", "price": 100, "images": ["/k.jpg"], "stock": 5},
            2: {"id": 2, "name": "Silk Scarf", "price": "45.50", "images": [], "stock": 3},
        }
        self.error = None

    def fetch_product(self, product_id):
        if self.error:
            raise self.error
        product = self.products.get(product_id)
        return dict(product) if product else None


class FakeGateway:
    def __init__(self):
        self.transactions = {}
        self.verify_calls = []
        self.initiated = []
        self.on_verify = None

    def add_transaction(self, reference, order_id, amount, currency="NGN", status="successful"):
        self.transactions[reference] = GatewayTransaction(
            id="9001",
            reference=reference,
            status=status,
            amount=Decimal(str(amount)),
            currency=currency,
            channel="card",
            payer_email="buyer@example.com",
            gateway_timestamp="2026-10-19T10:00:00.000Z",
            metadata={"order_id": str(order_id)},
        )

    def verify_by_reference(self, reference):
        self.verify_calls.append(reference)
        if self.on_verify:
            self.on_verify(reference)
        txn = self.transactions.get(reference)
        if isinstance(txn, Exception):
            raise txn
        if txn is None:
            raise GatewayVerificationFailed()
        return txn

    def initiate(self, order_total, currency, customer_email, order_id, reference,
                 customer_name=None, redirect_url=None):
        self.initiated.append({
            "order_total": order_total,
            "currency": currency,
            "customer_email": customer_email,
            "order_id": order_id,
            "reference": reference,
            "redirect_url": redirect_url,
        })
        return f"https://checkout.gateway.test/pay/{reference}"


class InMemoryLockService:
    def __init__(self):
        self.locks = {}
        self.acquired = []

    def acquire_order_lock(self, order_id, token, ttl):
        if order_id in self.locks:
            return False
        self.locks[order_id] = token
        self.acquired.append(order_id)
        return True

    def release_order_lock(self, order_id, token):
        if self.locks.get(order_id) == token:
            del self.locks[order_id]
            return True
        return False


class RecordingNotifier:
    def __init__(self):
        self.placed = []
        self.paid = []

    def send_order_placed(self, order, to_email, customer_name):
        self.placed.append((order["id"], to_email))
        return True

    def send_payment_confirmed(self, order, to_email, customer_name):
        self.paid.append((order["id"], to_email))
        return True


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def users(db):
    db.add_all([
        UserModel(id=CUSTOMER_ID, name="Ada Obi", email="ada@example.com", role=UserRole.CUSTOMER),
        UserModel(id=OTHER_ID, name="Tunde Bello", email="tunde@example.com", role=UserRole.CUSTOMER),
        UserModel(id=ADMIN_ID, name="Admin", email="admin@example.com", role=UserRole.ADMIN),
    ])
    db.commit()
    return {"customer": CUSTOMER_ID, "other": OTHER_ID, "admin": ADMIN_ID}


@pytest.fixture
def products():
    return FakeProductClient()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def lock_service():
    return InMemoryLockService()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(users, products, gateway, lock_service, notifier):
    app.dependency_overrides[deps.get_product_client] = lambda: products
    app.dependency_overrides[deps.get_payment_gateway] = lambda: gateway
    app.dependency_overrides[deps.get_lock_service] = lambda: lock_service
    app.dependency_overrides[deps.get_notification_service] = lambda: notifier
    app.dependency_overrides[deps.get_payment_config] = lambda: TEST_CONFIG
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def order_payload(total="200", items=None, tax="0", shipping="0"):
    if items is None:
        items = [{
            "product_id": 1,
            "name": "Linen Kaftan",
            "images": ["/k.jpg"],
            "price": "100",
            "selected_size": "M",
            "selected_colors": ["black"],
            "quantity": 2,
        }]
    return {
        "order_items": items,
        "shipping_address": {
            "address": "12 Marina Road",
            "city": "Lagos",
            "postal_code": "101001",
            "country": "Nigeria",
        },
        "payment_method": "Flutterwave",
        "tax_price": tax,
        "shipping_price": shipping,
        "total_price": total,
    }


@pytest.fixture
def place_order(db, users):
    """Tworzy zamowienie bezposrednio przez serwis, zwraca dict zamowienia."""

    def _place(user_id=CUSTOMER_ID, total="200"):
        svc = OrderService(db, RecordingNotifier(), currency="NGN")
        return svc.create_order(user_id, OrderCreate(**order_payload(total=total)))

    return _place

