"""
Outbound email via the Resend HTTP API.

Email failures never break the calling flow: ``EmailSender.send`` returns
the provider message id, or None after logging the failure.
"""

import html
import logging

import httpx

from app.core.config import NotificationSettings, get_notification_settings

logger = logging.getLogger(__name__)


class EmailSender:
    """Sends single transactional emails through Resend."""

    def __init__(
        self,
        settings: NotificationSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the sender.

        Args:
            settings: Notification settings. Defaults to the cached settings.
            transport: Optional httpx transport (used by tests).
        """
        self._settings = settings or get_notification_settings()
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._settings.resend_api_key)

    async def send(
        self,
        to: str,
        subject: str,
        html_body: str,
        sender: str | None = None,
    ) -> str | None:
        """
        Send one email.

        Returns:
            Resend message id, or None if the email was not sent.
        """
        if not self.configured:
            logger.error("RESEND_API_KEY is not configured, email not sent")
            return None

        payload = {
            "from": sender or self._settings.email_from,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }
        headers = {"Authorization": f"Bearer {self._settings.resend_api_key}"}

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.email_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._settings.resend_api_url, json=payload, headers=headers
                )
            data = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Failed to send email to {to}: {exc}")
            return None

        if response.status_code >= 400:
            logger.error(
                f"Resend rejected email to {to}: "
                f"{response.status_code} {data.get('message', '')}"
            )
            return None

        return data.get("id")


# -----------------------------
# Templates
# -----------------------------


def _layout(business_name: str, content: str) -> str:
    return (
        '<div style="font-family:sans-serif;max-width:560px;margin:0 auto;padding:24px">'
        f'<h2 style="margin:0 0 16px">{html.escape(business_name)}</h2>'
        f"{content}"
        '<p style="color:#9CA3AF;font-size:12px;margin-top:32px">'
        f"This email was sent by {html.escape(business_name)}.</p>"
        "</div>"
    )


def _paragraphs(text: str) -> str:
    return "".join(
        f"<p>{html.escape(block).replace(chr(10), '<br>')}</p>"
        for block in text.split("\n\n")
        if block.strip()
    )


def follow_up_email(business_name: str, customer_name: str, message: str) -> str:
    """Plain follow-up message addressed to the customer."""
    greeting = f"<p>Hi {html.escape(customer_name)},</p>"
    return _layout(business_name, greeting + _paragraphs(message))


def review_request_email(business_name: str, customer_name: str, review_url: str) -> str:
    """Ask the customer to leave a review."""
    content = (
        f"<p>Hi {html.escape(customer_name)},</p>"
        f"<p>Thank you for choosing {html.escape(business_name)}. "
        "We would love to hear about your experience.</p>"
        f'<p><a href="{html.escape(review_url, quote=True)}" '
        'style="display:inline-block;padding:10px 20px;background:#111827;'
        'color:#fff;border-radius:6px;text-decoration:none">Leave a review</a></p>'
    )
    return _layout(business_name, content)


def render_placeholders(text: str, customer_name: str, business_name: str) -> str:
    """Substitute {{customer_name}} and {{business_name}}."""
    return text.replace("{{customer_name}}", customer_name).replace(
        "{{business_name}}", business_name
    )
