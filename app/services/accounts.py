"""Keep the local copy of a user's Jobber account details current."""

from __future__ import annotations

import logging
from typing import Any

from app.models.oauth import ConnectionStatus, JobberAccount

logger = logging.getLogger(__name__)

# Jobber reports a missing signup name as the literal string "Empty".
_EMPTY_SIGNUP_NAME = "Empty"


class AccountSyncService:
    """Fetch the account behind a user's token and upsert it locally."""

    def __init__(self, *, store: Any, token_manager: Any, graphql_client: Any) -> None:
        self._store = store
        self._tokens = token_manager
        self._jobber = graphql_client

    async def sync(self, *, user_id: str) -> JobberAccount:
        token = await self._tokens.get_valid_token(user_id=user_id)
        account = await self._jobber.fetch_account(token)

        signup_name = account.signupName
        if signup_name == _EMPTY_SIGNUP_NAME:
            signup_name = None

        stored = self._store.upsert_account(
            user_id=user_id,
            jobber_id=account.id,
            name=account.name,
            signup_name=signup_name,
            industry=account.industry,
            phone=account.phone,
        )
        self._store.set_connection_status(user_id, ConnectionStatus.CONNECTED)
        logger.info("Synced Jobber account %s for user %s", stored.public_id, user_id)
        return stored.model_copy(
            update={"connection_status": ConnectionStatus.CONNECTED, "disconnected_at": None}
        )


__all__ = ["AccountSyncService"]
