"""Seed a user's Jobber token pair and optionally sync their account details.

The authorization-code exchange happens outside this service; use this
script to store the tokens it produced::

    python -m scripts.link_account --user-id 42 \
        --access-token "$ACCESS" --refresh-token "$REFRESH" \
        --expires-at "2025-01-01 12:00:00 UTC" --sync
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta

from app.clients.jobber_auth import OAuthTokenExchangeError, OAuthTokenNotFoundError
from app.clients.jobber_graphql import JobberAPIError
from app.clients.sqlite_store import TokenStoreError
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_account_sync_service, get_token_store
from app.models.oauth import TokenRecord, utcnow
from app.schemas.jobber import parse_jobber_expiry
from app.services.token_manager import TokenRefreshFailedError

logger = logging.getLogger("scripts.link_account")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Store Jobber OAuth tokens for a user.")
    parser.add_argument("--user-id", required=True, help="Internal user identifier.")
    parser.add_argument("--access-token", required=True)
    parser.add_argument("--refresh-token", required=True)
    parser.add_argument(
        "--expires-at",
        help="Access token expiry as returned by Jobber. Defaults to the configured lifetime.",
    )
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Fetch the Jobber account and mark it connected after storing the tokens.",
    )
    return parser


def build_record(args: argparse.Namespace, *, now: datetime, default_lifetime: timedelta) -> TokenRecord:
    expires_at = parse_jobber_expiry(args.expires_at) if args.expires_at else now + default_lifetime
    return TokenRecord(
        user_id=args.user_id,
        access_token=args.access_token,
        refresh_token=args.refresh_token,
        expires_at=expires_at,
        created_at=now,
    )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        record = build_record(
            args,
            now=utcnow(),
            default_lifetime=timedelta(seconds=settings.jobber.default_token_lifetime_seconds),
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        get_token_store().insert_token(record)
    except TokenStoreError as exc:
        logger.error("Could not store tokens for user %s: %s", args.user_id, exc)
        return 1
    logger.info("Stored Jobber tokens for user %s (expires %s)", args.user_id, record.expires_at)

    if not args.sync:
        return 0

    try:
        account = asyncio.run(get_account_sync_service().sync(user_id=args.user_id))
    except (
        JobberAPIError,
        OAuthTokenExchangeError,
        OAuthTokenNotFoundError,
        TokenRefreshFailedError,
        TokenStoreError,
    ) as exc:
        logger.error("Account sync failed for user %s: %s", args.user_id, exc)
        return 1

    print(f"Linked {account.name or account.jobber_id}: public id {account.public_id}")
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
