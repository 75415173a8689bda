# storefront/services/email_client.py
import requests

from storefront.utils.retry import http_retry
from storefront.utils.settings import EMAIL_API_URL, EMAIL_API_KEY, EMAIL_SENDER
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class EmailClient:
    """Klient HTTP API maili transakcyjnych (format Resend)."""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: int = 5,
    ):
        self.api_url = api_url or EMAIL_API_URL
        self.api_key = api_key if api_key is not None else EMAIL_API_KEY
        self.sender = sender if sender is not None else EMAIL_SENDER
        self.timeout = timeout

    def send(self, to: str, subject: str, html: str, text: str) -> bool:
        if not self.sender:
            logger.error("Email sending failed: sender is not configured")
            return False

        try:
            self._post({
                "from": f"Storefront <{self.sender}>",
                "to": [to],
                "subject": subject,
                "html": html,
                "text": text,
            })
        except requests.RequestException as e:
            logger.error(f"Error sending email to {to}: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to}")
        return True

    @http_retry()
    def _post(self, payload: dict) -> None:
        resp = requests.post(
            self.api_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
