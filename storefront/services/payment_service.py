# storefront/services/payment_service.py
import hmac
import json
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Any

from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import (
    AmountMismatch,
    ConcurrentModification,
    ConfirmationInProgress,
    InvalidInput,
    InvalidReference,
    InvalidStatusTransition,
    InvalidWebhookSignature,
    NotOwner,
    OrderAlreadyPaid,
    OrderNotFound,
    PaymentIntegrityError,
    PaymentNotSuccessful,
)
from storefront.domain.order_status import OrderStatus
from storefront.domain.schemas import GatewayTransaction
from storefront.domain.users import Principal
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import order_to_dict
from storefront.services.payment_gateway import FlutterwaveGateway
from storefront.utils.settings import PaymentConfig
from storefront.utils.logging import get_logger, fraud_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")
# kolumna id zamowienia to INTEGER
MAX_ORDER_ID = 2**31 - 1
ORDER_ID_RE = re.compile(r"[0-9]{1,10}")
SUCCESSFUL = "successful"

CHARGE_COMPLETED = "charge.completed"
IGNORED_EVENTS = ("charge.failed", "transfer.completed", "transfer.failed", "transaction.dispute")


class PaymentChannel(str, Enum):
    VERIFY = "verify"
    WEBHOOK = "webhook"


@dataclass
class ConfirmationOutcome:
    order: Dict[str, Any]
    # False gdy zamowienie bylo juz oplacone (idempotentny no-op)
    applied: bool


def check_webhook_signature(signature: str | None, config: PaymentConfig) -> None:
    """
    Porownanie naglowka verif-hash z sekretem bajt po bajcie.
    Wolane zanim cokolwiek dotknie bazy albo sparsuje body.
    """
    if not signature:
        fraud_logger.warning("Webhook rejected: missing verif-hash header")
        raise InvalidWebhookSignature()

    expected = config.webhook_secret_hash
    if not expected or not hmac.compare_digest(signature.encode(), expected.encode()):
        fraud_logger.warning("Webhook rejected: signature mismatch, possible fraudulent request")
        raise InvalidWebhookSignature()


class PaymentService:
    """
    Uzgadnianie platnosci z bramka.

    Dwa niezalezne kanaly (verify od klienta i webhook) przechodza przez ten sam
    protokol confirm_payment:
    1. zamowienie z metadanych sygnalu, inaczej OrderNotFound
    2. juz oplacone -> no-op, bez maila
    3. ponowna weryfikacja transakcji w bramce (status z sygnalu to tylko wskazowka)
    4. kwota i waluta musza sie zgadzac co do grosza
    5. warunkowy UPDATE: is_paid, paid_at, payment_result, status=processing
    6. mail tylko gdy przejscie faktycznie zaszlo
    """

    def __init__(
        self,
        db: Session,
        gateway: FlutterwaveGateway,
        lock_service: LockService,
        notification_service: NotificationService,
        config: PaymentConfig,
    ):
        self.repo = OrderRepo(db)
        self.user_repo = UserRepo(db)
        self.gateway = gateway
        self.lock_service = lock_service
        self.notification_service = notification_service
        self.config = config
        self._reference_re = re.compile(rf"^{re.escape(config.reference_prefix)}_(\d{{1,10}})_\d{{1,20}}$")

    # =====================================================
    # referencje transakcji
    # =====================================================
    def build_reference(self, order_id: int) -> str:
        return f"{self.config.reference_prefix}_{order_id}_{int(time.time() * 1000)}"

    def parse_reference(self, reference: str) -> int:
        match = self._reference_re.match(reference or "")
        if not match:
            raise InvalidReference()
        order_id = int(match.group(1))
        if not 0 < order_id <= MAX_ORDER_ID:
            raise InvalidReference()
        return order_id

    # =====================================================
    # inicjalizacja
    # =====================================================
    def initialize_payment(self, order_id: int, principal: Principal) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)

        if not order:
            raise OrderNotFound()

        if not principal.owns(order.user_id):
            raise NotOwner()

        if order.is_paid:
            raise OrderAlreadyPaid()

        if order.status != OrderStatus.PENDING.value:
            raise InvalidStatusTransition(f"Order is {order.status}, payment is not possible")

        reference = self.build_reference(order.id)
        redirect_url = (
            f"{self.config.redirect_base_url}/order/{order.id}/payment-success?tx_ref={reference}"
        )
        link = self.gateway.initiate(
            order_total=order.total_price,
            currency=order.currency,
            customer_email=principal.email,
            order_id=order.id,
            reference=reference,
            customer_name=principal.name,
            redirect_url=redirect_url,
        )

        logger.info(f"Payment session for order {order.id} initialized, tx_ref={reference}")
        return {"status": "success", "link": link, "tx_ref": reference}

    # =====================================================
    # kanaly potwierdzenia
    # =====================================================
    def verify_payment(self, reference: str, principal: Principal) -> ConfirmationOutcome:
        """Kanal verify: klient wraca z bramki z tx_ref."""
        order_id = self.parse_reference(reference)
        return self.confirm_payment(order_id, reference, PaymentChannel.VERIFY, principal)

    def handle_webhook(self, raw_body: bytes) -> Dict[str, Any]:
        """
        Kanal webhook. Podpis musi byc juz sprawdzony (check_webhook_signature),
        body parsujemy dopiero tutaj.
        """
        try:
            event = json.loads(raw_body)
        except ValueError as e:
            raise InvalidInput("Malformed webhook payload") from e

        if not isinstance(event, dict):
            raise InvalidInput("Malformed webhook payload")

        event_type = event.get("event")
        logger.info(f"Webhook event received: {event_type}")

        # pozostale zdarzenia potwierdzamy bez zagladania w data
        if event_type != CHARGE_COMPLETED:
            if event_type in IGNORED_EVENTS:
                logger.info(f"Webhook {event_type} ignored")
            else:
                logger.info(f"Unhandled webhook event type: {event_type}")
            return {"event": event_type if isinstance(event_type, str) else None, "handled": False}

        data = event.get("data")
        if not isinstance(data, dict):
            logger.error(f"Webhook {event_type}: data is not an object")
            raise InvalidInput("Malformed webhook payload")

        meta = data.get("meta") or {}
        if not isinstance(meta, dict):
            logger.error(f"Webhook {event_type}: meta is not an object")
            raise InvalidInput("Malformed webhook payload")

        raw_order_id = meta.get("order_id")
        reference = data.get("tx_ref")

        if not raw_order_id:
            logger.error(f"Webhook: order id missing from metadata for {event_type}")
            raise InvalidInput("Order ID missing")
        if not reference or not isinstance(reference, str):
            logger.error(f"Webhook: tx_ref missing for {event_type}")
            raise InvalidInput("Transaction reference missing")

        if isinstance(raw_order_id, bool) or not ORDER_ID_RE.fullmatch(str(raw_order_id)):
            raise InvalidInput("Order ID malformed")
        order_id = int(raw_order_id)
        if not 0 < order_id <= MAX_ORDER_ID:
            raise InvalidInput("Order ID malformed")

        outcome = self.confirm_payment(order_id, reference, PaymentChannel.WEBHOOK)
        return {"event": event_type, "handled": True, "order_id": order_id, "applied": outcome.applied}

    # =====================================================
    # protokol
    # =====================================================
    def confirm_payment(
        self,
        order_id: int,
        reference: str,
        channel: PaymentChannel,
        principal: Principal | None = None,
    ) -> ConfirmationOutcome:
        token = uuid.uuid4().hex
        held = self._acquire_lock(order_id, token)
        try:
            return self._reconcile(order_id, reference, channel, principal)
        finally:
            if held:
                self._release_lock(order_id, token)

    def _reconcile(
        self,
        order_id: int,
        reference: str,
        channel: PaymentChannel,
        principal: Principal | None,
    ) -> ConfirmationOutcome:
        order = self.repo.get_order(order_id)
        if not order:
            logger.error(f"{channel.value}: order {order_id} not found for {reference}")
            raise OrderNotFound()

        # webhook nie ma uzytkownika, jest uwierzytelniony podpisem
        if channel is PaymentChannel.VERIFY and (principal is None or not principal.owns(order.user_id)):
            raise NotOwner("Not authorized to update this order")

        if order.is_paid:
            logger.info(f"{channel.value}: order {order.id} already paid, {reference} is a no-op")
            return ConfirmationOutcome(order=order_to_dict(order), applied=False)

        if order.status != OrderStatus.PENDING.value:
            fraud_logger.warning(
                f"{channel.value}: payment {reference} arrived for order {order.id} in status {order.status}"
            )
            raise InvalidStatusTransition(f"Order is {order.status}, payment cannot be applied")

        txn = self.gateway.verify_by_reference(reference)

        if txn.status.lower() != SUCCESSFUL:
            logger.warning(f"{channel.value}: transaction {reference} for order {order.id} status {txn.status}")
            raise PaymentNotSuccessful(f"Payment not successful: {txn.status or 'Unknown status'}")

        self._check_integrity(order, txn, reference, channel)

        paid_at = datetime.now(timezone.utc)
        payment_result = {
            "id": txn.id,
            "reference": txn.reference,
            "status": txn.status,
            "channel": txn.channel,
            "amount": str(txn.amount),
            "currency": txn.currency,
            "email_address": txn.payer_email,
            "gateway_timestamp": txn.gateway_timestamp,
        }

        rowcount = self.repo.mark_paid(order.id, payment_result, paid_at)
        if rowcount == 0:
            # drugi kanal byl szybszy
            self.repo.rollback()
            order = self.repo.refresh(order)
            if order.is_paid:
                logger.info(f"{channel.value}: order {order.id} paid concurrently, {reference} is a no-op")
                return ConfirmationOutcome(order=order_to_dict(order), applied=False)
            raise ConcurrentModification()

        self.repo.commit()
        order = self.repo.refresh(order)

        logger.info(f"{channel.value}: order {order.id} marked paid ({reference}), status processing")

        result = order_to_dict(order)
        self._notify_paid(order.user_id, result)
        return ConfirmationOutcome(order=result, applied=True)

    def _check_integrity(
        self,
        order: OrderModel,
        txn: GatewayTransaction,
        reference: str,
        channel: PaymentChannel,
    ) -> None:
        meta_order_id = str(txn.metadata.get("order_id") or "")
        if meta_order_id != str(order.id) or txn.reference != reference:
            fraud_logger.warning(
                f"{channel.value}: transaction {reference} does not belong to order {order.id} "
                f"(gateway order_id={meta_order_id or None}, gateway tx_ref={txn.reference})"
            )
            raise PaymentIntegrityError()

        expected_amount = Decimal(str(order.total_price)).quantize(CENT)
        # bez zaokraglania, 199.995 to nie 200.00
        received_amount = txn.amount
        expected_currency = order.currency.upper()

        if (
            txn.currency != expected_currency
            or txn.currency != self.config.currency
            or not received_amount.is_finite()
            or received_amount != expected_amount
        ):
            fraud_logger.warning(
                f"{channel.value}: amount mismatch for order {order.id}. "
                f"Expected: {expected_amount} {expected_currency}, "
                f"Received: {received_amount} {txn.currency}. Transaction Reference: {reference}"
            )
            raise AmountMismatch()

    def _notify_paid(self, user_id: int, order: Dict[str, Any]) -> None:
        user = self.user_repo.get_user(user_id)
        if not user:
            logger.warning(f"User {user_id} not found, payment confirmation for order {order['id']} not sent")
            return
        self.notification_service.send_payment_confirmed(order, user.email, user.name)

    # =====================================================
    # lock potwierdzenia
    # =====================================================
    def _acquire_lock(self, order_id: int, token: str) -> bool:
        try:
            locked = self.lock_service.acquire_order_lock(order_id, token, ttl=self.config.lock_ttl)
        except RedisError as e:
            # poprawnosc i tak trzyma warunkowy UPDATE
            logger.warning(f"Confirmation lock for order {order_id} unavailable, continuing without it: {e}")
            return False

        if not locked:
            logger.info(f"Confirmation for order {order_id} already in progress")
            raise ConfirmationInProgress()
        return True

    def _release_lock(self, order_id: int, token: str) -> None:
        try:
            self.lock_service.release_order_lock(order_id, token)
        except RedisError as e:
            # lock i tak wygasnie po TTL
            logger.warning(f"Failed to release confirmation lock for order {order_id}: {e}")
