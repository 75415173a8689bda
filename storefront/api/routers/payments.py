# storefront/api/routers/payments.py
from fastapi import APIRouter, Depends, Header, HTTPException, Request

from storefront.api.deps import get_payment_config, get_payment_service
from storefront.api.security import get_current_user
from storefront.domain.errors import StoreError, InvalidWebhookSignature, UpstreamError
from storefront.domain.schemas import PaymentInitIn, PaymentInitOut, PaymentVerifyOut
from storefront.domain.users import Principal
from storefront.services.payment_service import PaymentService, check_webhook_signature
from storefront.utils.settings import PaymentConfig
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments/flutterwave", tags=["payments"])


@router.post("/initialize", response_model=PaymentInitOut)
def initialize_payment(
    payload: PaymentInitIn,
    user: Principal = Depends(get_current_user),
    svc: PaymentService = Depends(get_payment_service),
):
    """Zwraca link do hostowanej strony platnosci."""
    try:
        return svc.initialize_payment(payload.order_id, user)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/verify/{tx_ref}", response_model=PaymentVerifyOut)
def verify_payment(
    tx_ref: str,
    user: Principal = Depends(get_current_user),
    svc: PaymentService = Depends(get_payment_service),
):
    """
    Klient wraca z bramki. Bezpieczne do wielokrotnego wywolania (odswiezenie strony).
    """
    try:
        outcome = svc.verify_payment(tx_ref, user)
    except StoreError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    message = (
        "Payment verified and order updated successfully"
        if outcome.applied
        else "Order already paid"
    )
    return {"message": message, "order": outcome.order}


async def verified_webhook_body(
    request: Request,
    verif_hash: str | None = Header(None, alias="verif-hash"),
    config: PaymentConfig = Depends(get_payment_config),
) -> bytes:
    # podpis sprawdzany przed sesja bazy i przed parsowaniem body
    try:
        check_webhook_signature(verif_hash, config)
    except InvalidWebhookSignature as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return await request.body()


@router.post("/webhook")
def flutterwave_webhook(
    body: bytes = Depends(verified_webhook_body),
    svc: PaymentService = Depends(get_payment_service),
):
    try:
        result = svc.handle_webhook(body)
    except UpstreamError as e:
        # bramka ponowi webhook
        logger.error(f"Webhook processing failed upstream: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except StoreError as e:
        logger.warning(f"Webhook rejected ({e.status_code}): {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return {"status": "received", **result}
