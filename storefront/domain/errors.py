# storefront/domain/errors.py
"""
Wyjatki domenowe. Kazdy niesie status HTTP, routery tlumacza je na HTTPException.
"""


class StoreError(Exception):
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


# walidacja (400)
class InvalidInput(StoreError):
    status_code = 400
    default_message = "Invalid input"


class EmptyOrder(InvalidInput):
    default_message = "No order items"


class TotalMismatch(InvalidInput):
    default_message = "Order total does not match items, tax and shipping"


class InvalidReference(InvalidInput):
    default_message = "Malformed transaction reference"


class PaymentNotSuccessful(InvalidInput):
    default_message = "Payment not successful"


# brak zasobu (404)
class NotFound(StoreError):
    status_code = 404
    default_message = "Not found"


class OrderNotFound(NotFound):
    default_message = "Order not found"


class CartNotFound(NotFound):
    default_message = "Cart not found for this user"


class ItemNotFound(NotFound):
    default_message = "Item not found in cart"


class ProductNotFound(NotFound):
    default_message = "Product not found"


# autoryzacja
class NotOwner(StoreError):
    status_code = 401
    default_message = "Not authorized to access this order"


class InvalidWebhookSignature(StoreError):
    status_code = 401
    default_message = "Unauthorized"


class AdminRequired(StoreError):
    status_code = 403
    default_message = "Admin access required"


# konflikty
class Conflict(StoreError):
    status_code = 409
    default_message = "Conflict"


class ConcurrentModification(Conflict):
    default_message = "Resource was modified by another request, retry"


class ConfirmationInProgress(Conflict):
    default_message = "Payment confirmation for this order is already in progress, retry"


class InvalidStatusTransition(Conflict):
    default_message = "Order status transition not allowed"


class OrderAlreadyPaid(Conflict):
    status_code = 400
    default_message = "Order already paid"


# niezgodnosc z bramka - podejrzenie oszustwa
class PaymentIntegrityError(StoreError):
    status_code = 400
    # klient dostaje ogolny komunikat, szczegoly tylko w logu
    default_message = "Payment could not be confirmed"


class AmountMismatch(PaymentIntegrityError):
    pass


# uslugi zewnetrzne (502), bezpieczne do ponowienia
class UpstreamError(StoreError):
    status_code = 502
    default_message = "Upstream service unavailable"


class GatewayVerificationFailed(UpstreamError):
    default_message = "Payment verification with the gateway failed, retry later"


class PaymentInitiationFailed(UpstreamError):
    default_message = "Payment initialization failed"


class CatalogUnavailable(UpstreamError):
    default_message = "Product catalog unavailable"
