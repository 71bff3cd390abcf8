"""Email collaborator - posts messages to the CRM's email proxy API."""

from typing import Optional

import httpx

from crm_workflows.constants import COMPANY_SETTINGS_TABLE
from crm_workflows.core.config import Settings
from crm_workflows.core.exceptions import EmailDeliveryError, StorageError
from crm_workflows.core.logging import get_logger
from crm_workflows.core.store import RecordStore

logger = get_logger(__name__)

SEND_EMAIL_PATH = "/api/send-email"


def render_html_body(body: Optional[str]) -> str:
    """Wrap plain text in the proxy's styled container, newlines as <br>."""
    text = (body or "").replace("\n", "<br>")
    return f'<div style="font-family: sans-serif; padding: 20px;">{text}</div>'


class EmailSender:
    """Sends email through the HTTP proxy configured by ``email_api_url``."""

    def __init__(self, settings: Settings, store: Optional[RecordStore] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            settings: Engine settings (proxy URL, timeout, default from-name)
            store: Record store used to look up company_settings.company_name
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
        """
        self.settings = settings
        self.store = store
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.settings.email_api_url}{SEND_EMAIL_PATH}"

    async def resolve_from_name(self) -> str:
        """Company name from company_settings, falling back to configuration."""
        if self.store is None:
            return self.settings.email_from_name
        try:
            rows = await self.store.select(COMPANY_SETTINGS_TABLE, limit=1)
        except StorageError as e:
            logger.warning("Company settings lookup failed", error=str(e))
            return self.settings.email_from_name
        if rows and rows[0].get("company_name"):
            return rows[0]["company_name"]
        return self.settings.email_from_name

    async def send(self, to: str, subject: str, body: Optional[str] = "") -> Optional[str]:
        """Send one email.

        Returns:
            Message id reported by the proxy, if any

        Raises:
            EmailDeliveryError: Network failure, non-2xx status, or success=false
        """
        payload = {
            "to": to,
            "subject": subject,
            "htmlBody": render_html_body(body),
            "fromName": await self.resolve_from_name(),
        }

        try:
            async with httpx.AsyncClient(timeout=self.settings.email_timeout,
                                         transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            logger.error("Email request failed", to=to, error=str(e))
            raise EmailDeliveryError(f"Email request failed: {e}") from e

        if not response.is_success:
            logger.error("Email API rejected message", to=to, status_code=response.status_code)
            raise EmailDeliveryError(f"Email API returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if isinstance(data, dict) and data.get("success") is False:
            error = data.get("error") or "Email API reported failure"
            logger.error("Email API reported failure", to=to, error=error)
            raise EmailDeliveryError(error)

        message_id = (data.get("messageId") or data.get("id")) if isinstance(data, dict) else None
        logger.info("Email sent", to=to, subject=subject, message_id=message_id)
        return message_id
