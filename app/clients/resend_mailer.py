"""Transactional email delivery through the Resend HTTP API."""

from __future__ import annotations

from typing import Optional

import httpx

from app.core.config import MailerSettings


class EmailDeliveryError(RuntimeError):
    """Raised when an email could not be handed to the provider."""


class ResendMailer:
    """Send plain-text emails from the configured mailer address."""

    def __init__(
        self,
        settings: MailerSettings,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout_seconds
        self._transport = transport

    @property
    def sender(self) -> str:
        return f"{self._settings.sender_name} <{self._settings.mailer_address}>"

    async def send(self, *, to: str, subject: str, text: str) -> Optional[str]:
        """Deliver a message and return the provider's message id."""
        if not self._settings.resend_api_key:
            raise EmailDeliveryError("RESEND_API_KEY is not configured.")

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self._settings.resend_api_key}"}

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    str(self._settings.resend_api_url), json=payload, headers=headers
                )
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email provider unreachable: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise EmailDeliveryError(f"Email provider returned HTTP {response.status_code}")

        try:
            return response.json().get("id")
        except (ValueError, AttributeError):
            return None


__all__ = ["EmailDeliveryError", "ResendMailer"]
