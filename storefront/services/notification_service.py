# storefront/services/notification_service.py
from decimal import Decimal

from storefront.celery_worker import celery_app
from storefront.services.email_client import EmailClient
from storefront.utils.settings import frontend_base_url
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _money(currency: str, amount) -> str:
    return f"{currency}{Decimal(str(amount)):.2f}"


def _address_lines(address: dict) -> list[str]:
    return [
        f"{address['address']},",
        f"{address['city']}, {address['postal_code']}",
        address["country"],
    ]


class NotificationService:
    """
    Serwis do wysyłania powiadomień.
    Renderuje maila i oddaje wysylke do Celery. Blad nigdy nie wychodzi poza serwis.
    """

    def send_order_placed(self, order: dict, to_email: str, customer_name: str) -> bool:
        subject = f"Your Storefront Order #{order['id']} has been placed!"
        intro = (
            "Thank you for your purchase. Your order has been successfully placed "
            f"and is currently {str(order['status']).upper()}."
        )
        outro = "We will notify you once your payment has been confirmed and your order ships."
        html, text = self._render(order, customer_name, intro, outro)
        return self._enqueue(to_email, subject, html, text)

    def send_payment_confirmed(self, order: dict, to_email: str, customer_name: str) -> bool:
        subject = f"Payment received for Storefront Order #{order['id']}"
        intro = (
            f"We have received your payment of {_money(order['currency'], order['total_price'])}. "
            f"Your order is now {str(order['status']).upper()}."
        )
        outro = "We will notify you once your order has been shipped."
        html, text = self._render(order, customer_name, intro, outro)
        return self._enqueue(to_email, subject, html, text)

    @staticmethod
    def _render(order: dict, customer_name: str, intro: str, outro: str) -> tuple[str, str]:
        currency = order["currency"]
        order_url = f"{frontend_base_url()}/order/{order['id']}"
        address = _address_lines(order["shipping_address"])
        items = [
            f"{i['name']} ({i['quantity']} x {_money(currency, i['price'])}) - Size: {i['selected_size']}"
            for i in order["order_items"]
        ]

        html = (
            f"<h1>Order #{order['id']}</h1>"
            f"<p>Dear {customer_name},</p>"
            f"<p>{intro}</p>"
            "<h2>Order Details:</h2>"
            "<ul>"
            f"<li><strong>Order ID:</strong> {order['id']}</li>"
            f"<li><strong>Total Price:</strong> {_money(currency, order['total_price'])}</li>"
            f"<li><strong>Payment Method:</strong> {order['payment_method']}</li>"
            f"<li><strong>Shipping Address:</strong><br>{'<br>'.join(address)}</li>"
            "</ul>"
            "<h3>Items in Your Order:</h3>"
            f"<ul>{''.join(f'<li>{line}</li>' for line in items)}</ul>"
            f"<p>{outro}</p>"
            f'<p>You can track your order at <a href="{order_url}">your order page</a>.</p>'
            "<p>Best regards,<br>The Storefront Team</p>"
        )
        text = "\n".join([
            f"Order #{order['id']}",
            f"Dear {customer_name},",
            intro,
            f"Order ID: {order['id']}",
            f"Total Price: {_money(currency, order['total_price'])}",
            f"Payment Method: {order['payment_method']}",
            "Shipping Address:",
            *address,
            "Items in Your Order:",
            *items,
            outro,
            f"You can track your order at: {order_url}",
            "Best regards,",
            "The Storefront Team",
        ])
        return html, text

    @staticmethod
    def _enqueue(to_email: str, subject: str, html: str, text: str) -> bool:
        try:
            send_email_task.delay(to_email, subject, html, text)
        except Exception as e:
            # broker niedostepny - zamowienie/platnosc i tak zostaja
            logger.warning(f"Failed to enqueue email '{subject}' to {to_email}: {e}")
            return False
        return True


@celery_app.task(name="storefront.services.notification_service.send_email_task")
def send_email_task(to_email: str, subject: str, html: str, text: str):
    """
    Celery task - wysyla maila przez API. Porazka jest tylko logowana.
    """
    sent = EmailClient().send(to_email, subject, html, text)
    if not sent:
        logger.warning(f"[NOTIFICATION] Email '{subject}' to {to_email} was not delivered")

    return {"to": to_email, "subject": subject, "status": "sent" if sent else "failed"}
