# storefront/services/payment_gateway.py
from decimal import Decimal

import requests

from storefront.domain.errors import GatewayVerificationFailed, PaymentInitiationFailed
from storefront.domain.schemas import GatewayTransaction
from storefront.utils.retry import http_retry
from storefront.utils.settings import PaymentConfig
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class FlutterwaveGateway:
    """
    Adapter bramki Flutterwave.
    - initiate: tworzy hostowana sesje platnosci i zwraca link przekierowania
    - verify_by_reference: autorytatywny stan transakcji po tx_ref
    Kazde wywolanie ma ograniczony timeout.
    """

    def __init__(self, config: PaymentConfig, session: requests.Session | None = None):
        self.config = config
        self.http = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.secret_key}",
            "Content-Type": "application/json",
        }

    def initiate(
        self,
        order_total: Decimal,
        currency: str,
        customer_email: str,
        order_id: int,
        reference: str,
        customer_name: str | None = None,
        redirect_url: str | None = None,
    ) -> str:
        payload = {
            "tx_ref": reference,
            "amount": str(order_total),
            "currency": currency,
            "redirect_url": redirect_url,
            "customer": {"email": customer_email, "name": customer_name or customer_email},
            "customizations": {
                "title": "Storefront Payment",
                "description": f"Payment for Order {order_id}",
            },
            "meta": {"order_id": str(order_id)},
        }
        url = f"{self.config.base_url}/payments"
        logger.info(f"Gateway POST {url} tx_ref={reference}")

        # POST nie jest ponawiany, mogloby powstac kilka sesji
        try:
            resp = self.http.post(url, json=payload, headers=self._headers(), timeout=self.config.timeout)
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Gateway initialization error for order {order_id}: {e}")
            raise PaymentInitiationFailed() from e

        if body.get("status") != "success" or not (body.get("data") or {}).get("link"):
            logger.error(f"Gateway initialization rejected for order {order_id}: {body.get('message')}")
            raise PaymentInitiationFailed(
                f"Payment initialization failed: {body.get('message') or 'Unknown error'}"
            )
        return body["data"]["link"]

    def verify_by_reference(self, reference: str) -> GatewayTransaction:
        try:
            body = self._fetch_verification(reference)
        except (requests.RequestException, ValueError) as e:
            # timeout to NIE jest nieudana platnosc, klient moze ponowic
            logger.error(f"Gateway verification error for {reference}: {e}")
            raise GatewayVerificationFailed() from e

        if not isinstance(body, dict):
            logger.error(f"Gateway verification for {reference} returned a non-object body")
            raise GatewayVerificationFailed()

        data = body.get("data")
        if body.get("status") != "success" or not isinstance(data, dict) or not data:
            logger.error(f"Gateway verification rejected for {reference}: {body.get('message')}")
            raise GatewayVerificationFailed()
        return self._to_transaction(data, reference)

    @http_retry()
    def _fetch_verification(self, reference: str) -> dict:
        url = f"{self.config.base_url}/transactions/verify_by_reference"
        logger.info(f"Gateway GET {url} tx_ref={reference}")
        resp = self.http.get(
            url,
            params={"tx_ref": reference},
            headers=self._headers(),
            timeout=self.config.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    @staticmethod
    def _to_transaction(data: dict, reference: str) -> GatewayTransaction:
        customer = data.get("customer")
        if not isinstance(customer, dict):
            customer = {}
        meta = data.get("meta")
        try:
            amount = Decimal(str(data.get("amount")))
        except ArithmeticError as e:
            raise GatewayVerificationFailed() from e
        # Infinity / NaN to nie kwota
        if not amount.is_finite():
            logger.error(f"Gateway returned non-finite amount for {reference}: {amount}")
            raise GatewayVerificationFailed()
        return GatewayTransaction(
            id=str(data["id"]) if data.get("id") is not None else None,
            reference=data.get("tx_ref") or reference,
            status=str(data.get("status") or ""),
            amount=amount,
            currency=str(data.get("currency") or "").upper(),
            channel=data.get("payment_type"),
            payer_email=customer.get("email"),
            gateway_timestamp=data.get("created_at"),
            metadata=meta if isinstance(meta, dict) else {},
        )
