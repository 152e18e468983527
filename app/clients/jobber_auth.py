"""
Jobber OAuth utilities.

Only the refresh-token grant lives here; the authorization-code exchange is
handled outside this service.
"""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import ValidationError

from app.core.config import JobberSettings
from app.schemas.jobber import TokenGrant


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint cannot produce a new token pair."""


class OAuthTransportError(OAuthTokenExchangeError):
    """The token endpoint was unreachable, timed out, or rejected the request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OAuthInvalidResponseError(OAuthTokenExchangeError):
    """The token endpoint answered with a payload that failed validation."""


class OAuthTokenNotFoundError(Exception):
    """Raised when no persisted OAuth token is available for a user."""


class JobberOAuthClient:
    """Exchange refresh tokens against the Jobber token endpoint."""

    def __init__(
        self,
        settings: JobberSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def refresh_exchange(self, refresh_token: str) -> TokenGrant:
        """Trade ``refresh_token`` for a new access/refresh pair."""
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(str(self._settings.token_url), data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTransportError(
                f"Token endpoint request failed: {exc.__class__.__name__}"
            ) from exc

        if response.status_code != httpx.codes.OK:
            raise OAuthTransportError(
                f"Token endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthInvalidResponseError(
                "Token endpoint returned a malformed refresh payload."
            ) from exc


__all__ = [
    "JobberOAuthClient",
    "OAuthInvalidResponseError",
    "OAuthTokenExchangeError",
    "OAuthTokenNotFoundError",
    "OAuthTransportError",
]
