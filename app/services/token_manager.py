"""
Retrieve and refresh Jobber OAuth tokens.

Concurrent callers are reconciled through the token store's conditional
replace: the first writer whose expected refresh token still matches wins,
everyone else re-reads. There is no in-process lock, so the same guarantee
holds across worker processes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from app.clients.jobber_auth import (
    OAuthInvalidResponseError,
    OAuthTokenNotFoundError,
    OAuthTransportError,
)
from app.clients.sqlite_store import TokenStoreError
from app.models.oauth import (
    ConnectionStatus,
    DisconnectReason,
    RefreshOutcome,
    TokenConnected,
    TokenDisconnected,
    TokenRecord,
    utcnow,
)

logger = logging.getLogger(__name__)


class TokenRefreshFailedError(Exception):
    """The stored token could not be renewed; the account needs re-authorization."""

    def __init__(self, reason: DisconnectReason, detail: str = "") -> None:
        message = f"Token refresh failed ({reason.value})"
        super().__init__(f"{message}: {detail}" if detail else message)
        self.reason = reason
        self.detail = detail


class JobberTokenManager:
    """Hand out valid Jobber access tokens, refreshing them when near expiry."""

    _REFRESH_WINDOW = timedelta(minutes=5)

    def __init__(
        self,
        *,
        token_store: Any,
        oauth_client: Any,
        status_tracker: Any,
        refresh_window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = token_store
        self._oauth = oauth_client
        self._status = status_tracker
        self._window = refresh_window if refresh_window is not None else self._REFRESH_WINDOW
        self._clock = clock

    def _is_expiring(self, record: TokenRecord) -> bool:
        return record.expires_within(self._window, now=self._clock())

    async def get_valid_token(self, *, user_id: str) -> str:
        """Return an access token that stays valid for at least the refresh window.

        Raises ``OAuthTokenNotFoundError`` when the user never linked an
        account and ``TokenRefreshFailedError`` when renewal failed. Errors
        from the initial store read propagate untouched and leave the
        connection status alone.
        """
        record = self._store.find_current(user_id)
        if record is None:
            logger.info("No Jobber token stored for user %s", user_id)
            raise OAuthTokenNotFoundError(f"No OAuth token stored for user {user_id}.")

        if not self._is_expiring(record):
            return record.access_token

        outcome = await self.refresh(record)
        self._record_status(user_id, outcome)

        if isinstance(outcome, TokenDisconnected):
            raise TokenRefreshFailedError(outcome.reason, outcome.detail)
        return outcome.access_token

    async def refresh(self, record: TokenRecord) -> RefreshOutcome:
        """Renew ``record`` and settle any race with concurrent refreshers.

        Does not write connection status; callers derive that from the outcome.
        """
        user_id = record.user_id
        try:
            grant = await self._oauth.refresh_exchange(record.refresh_token)
        except OAuthInvalidResponseError as exc:
            logger.error("Jobber refresh for user %s returned an invalid response: %s", user_id, exc)
            return self._settle_failed_exchange(
                record, TokenDisconnected(DisconnectReason.INVALID_RESPONSE, str(exc))
            )
        except OAuthTransportError as exc:
            logger.error("Jobber refresh for user %s failed in transport: %s", user_id, exc)
            return self._settle_failed_exchange(
                record, TokenDisconnected(DisconnectReason.TRANSPORT_ERROR, str(exc))
            )

        issued_at = self._clock()
        replacement = TokenRecord(
            user_id=user_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.resolve_expiry(issued_at=issued_at),
            created_at=issued_at,
        )
        if replacement.expires_at <= issued_at:
            logger.error(
                "Jobber refresh for user %s returned a token that expired at %s",
                user_id,
                replacement.expires_at.isoformat(),
            )
            return self._settle_failed_exchange(
                record,
                TokenDisconnected(
                    DisconnectReason.INVALID_RESPONSE, "Refreshed token is already expired."
                ),
            )

        try:
            won = self._store.conditional_replace(
                user_id,
                expected_refresh_token=record.refresh_token,
                new_record=replacement,
            )
            if won:
                logger.info("Refreshed Jobber token for user %s", user_id)
                return TokenConnected(access_token=replacement.access_token, refreshed=True)

            logger.info("Lost Jobber token refresh race for user %s; re-reading", user_id)
            current = self._store.find_current(user_id)
        except TokenStoreError as exc:
            logger.error("Token store failed while refreshing user %s: %s", user_id, exc)
            return TokenDisconnected(DisconnectReason.STORE_ERROR, str(exc))

        if current is not None and not self._is_expiring(current):
            return TokenConnected(access_token=current.access_token, refreshed=False)

        logger.error("Token for user %s is still expiring after a lost refresh race", user_id)
        return TokenDisconnected(
            DisconnectReason.STILL_EXPIRING, "Stored token still expiring after refresh race."
        )

    def _settle_failed_exchange(
        self, record: TokenRecord, failure: TokenDisconnected
    ) -> RefreshOutcome:
        """Prefer a token another caller stored while our exchange was failing."""
        try:
            current = self._store.find_current(record.user_id)
        except TokenStoreError as exc:
            logger.warning("Could not re-read token for user %s: %s", record.user_id, exc)
            return failure

        if (
            current is not None
            and current.refresh_token != record.refresh_token
            and not self._is_expiring(current)
        ):
            logger.info(
                "Refresh for user %s failed but a concurrent refresh succeeded", record.user_id
            )
            return TokenConnected(access_token=current.access_token, refreshed=False)
        return failure

    def _record_status(self, user_id: str, outcome: RefreshOutcome) -> None:
        if isinstance(outcome, TokenDisconnected):
            status, disconnected_at = ConnectionStatus.DISCONNECTED, self._clock()
        elif outcome.refreshed:
            status, disconnected_at = ConnectionStatus.CONNECTED, None
        else:
            return

        try:
            self._status.set_connection_status(user_id, status, disconnected_at)
        except TokenStoreError:
            logger.exception(
                "Failed to mark Jobber account %s for user %s", status.value, user_id
            )


__all__ = ["JobberTokenManager", "TokenRefreshFailedError"]
