"""Booking confirmation email via Resend"""
import html
import logging
from typing import Any, Dict, Optional

import httpx

import config
from errors import NotificationError

logger = logging.getLogger(__name__)


def render_confirmation_email(record: Dict[str, Any], booking_id: str, base_url: str) -> str:
    """Build the HTML body of the confirmation email."""
    qr_url = f"{base_url.rstrip('/')}/qr/{booking_id}"
    name = html.escape(str(record.get("fullName") or record.get("name") or "there"))
    rows = "".join(
        f"<tr><td style=\"padding: 4px 12px 4px 0; color: #6b7280;\">{html.escape(str(k))}</td>"
        f"<td style=\"padding: 4px 0;\">{html.escape(str(v))}</td></tr>"
        for k, v in record.items()
    )
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #7c3aed;">Booking Confirmed!</h2>
        <p>Hi {name}, your reservation is confirmed.</p>
        <p><strong>Booking ID:</strong> {html.escape(booking_id)}</p>
        <table>{rows}</table>
        <p>
            <a href="{html.escape(qr_url)}">Show your QR code</a>. You'll need it to enter the cafe.
        </p>
    </div>
    """


class ResendNotifier:
    """Sends one confirmation email per booking. Failures raise NotificationError."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        api_url: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or config.RESEND_API_KEY
        self.sender = sender or config.EMAIL_FROM
        self.api_url = api_url or config.RESEND_API_URL
        self.base_url = base_url or config.PUBLIC_BASE_URL
        self._client = client

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self._client is not None:
            return await self._client.post(self.api_url, headers=headers, json=payload)
        async with httpx.AsyncClient() as client:
            return await client.post(self.api_url, headers=headers, json=payload)

    async def send_confirmation(self, record: Dict[str, Any], booking_id: str) -> bool:
        recipient = record.get("email")
        if not recipient:
            raise NotificationError("No recipient email in booking")

        payload = {
            "from": self.sender,
            "to": [recipient],
            "subject": f"Your booking {booking_id} is confirmed",
            "html": render_confirmation_email(record, booking_id, self.base_url),
        }
        try:
            response = await self._post(payload)
        except httpx.HTTPError as e:
            logger.error(f"Confirmation email error for booking {booking_id}: {e}")
            raise NotificationError(f"Email delivery failed: {e}") from e

        if response.status_code != 200:
            error_msg = f"Failed to send email: {response.status_code} - {response.text}"
            logger.error(error_msg)
            raise NotificationError(error_msg)

        logger.info(f"Confirmation email sent for booking {booking_id}")
        return True


def get_notifier() -> Optional[ResendNotifier]:
    if not config.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set; confirmation emails are skipped")
        return None
    return ResendNotifier()
