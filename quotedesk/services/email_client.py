"""HTTP client for the transactional email provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel

from ..config import Settings
from ..errors import EmailDeliveryError

logger = logging.getLogger(__name__)


class EmailMessage(BaseModel):
    sender: str
    to: list[str]
    subject: str
    html: str

    def payload(self) -> dict[str, Any]:
        return {"from": self.sender, "to": self.to, "subject": self.subject, "html": self.html}


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class EmailClient:
    """Sends mail through a Resend-compatible ``POST /emails`` endpoint.

    Sends are attempted exactly once; retrying is left to the caller.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self._settings = settings
        self.client = client or httpx.AsyncClient(
            base_url=settings.email_api_url,
            timeout=settings.request_timeout_seconds,
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def send(self, message: EmailMessage) -> str | None:
        if not self._settings.email_api_key:
            raise EmailDeliveryError("Email provider is not configured")

        try:
            response = await self.client.post(
                "/emails",
                json=message.payload(),
                headers={"Authorization": f"Bearer {self._settings.email_api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Email provider unreachable: %s", exc)
            raise EmailDeliveryError(provider_error=str(exc)) from exc

        if response.is_error:
            body = _json_or_text(response)
            logger.error("Email sending failed with status %s: %s", response.status_code, body)
            raise EmailDeliveryError(provider_status=response.status_code, provider_error=body)

        body = _json_or_text(response)
        email_id = body.get("id") if isinstance(body, dict) else None
        logger.info("Email sent successfully: %s", email_id)
        return email_id
