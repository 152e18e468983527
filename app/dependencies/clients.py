"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from datetime import timedelta
from functools import lru_cache

from app.clients import (
    DynamoDBTokenStore,
    JobberGraphQLClient,
    JobberOAuthClient,
    ResendMailer,
    SQLiteStore,
)
from app.core.config import get_settings
from app.services import (
    AccountSyncService,
    JobberTokenManager,
    LookupEmailService,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.jobber.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide the SQLite store holding accounts, usage logs and (by default) tokens."""
    settings = _settings()
    return SQLiteStore(
        settings.token_store.database_path,
        cipher=get_token_cipher_service(),
        timeout_seconds=settings.token_store.timeout_seconds,
    )


@lru_cache()
def get_token_store():
    """Provide the configured token backend."""
    settings = _settings()
    if settings.token_store.backend == "dynamodb":
        return DynamoDBTokenStore(
            settings.aws,
            cipher=get_token_cipher_service(),
            timeout_seconds=settings.token_store.timeout_seconds,
        )
    return get_sqlite_store()


@lru_cache()
def get_jobber_oauth_client() -> JobberOAuthClient:
    return JobberOAuthClient(_settings().jobber)


@lru_cache()
def get_jobber_graphql_client() -> JobberGraphQLClient:
    return JobberGraphQLClient(_settings().jobber)


@lru_cache()
def get_mailer() -> ResendMailer:
    settings = _settings()
    return ResendMailer(
        settings.mailer, timeout_seconds=settings.jobber.request_timeout_seconds
    )


@lru_cache()
def get_token_manager() -> JobberTokenManager:
    """Provide the token manager; connection status is always tracked in SQLite."""
    settings = _settings()
    return JobberTokenManager(
        token_store=get_token_store(),
        oauth_client=get_jobber_oauth_client(),
        status_tracker=get_sqlite_store(),
        refresh_window=timedelta(seconds=settings.token_store.refresh_margin_seconds),
    )


def get_lookup_service() -> LookupEmailService:
    """Build the lookup orchestration service."""
    return LookupEmailService(
        store=get_sqlite_store(),
        token_manager=get_token_manager(),
        graphql_client=get_jobber_graphql_client(),
        mailer=get_mailer(),
    )


def get_account_sync_service() -> AccountSyncService:
    return AccountSyncService(
        store=get_sqlite_store(),
        token_manager=get_token_manager(),
        graphql_client=get_jobber_graphql_client(),
    )


__all__ = [
    "get_account_sync_service",
    "get_jobber_graphql_client",
    "get_jobber_oauth_client",
    "get_lookup_service",
    "get_mailer",
    "get_sqlite_store",
    "get_token_cipher_service",
    "get_token_manager",
    "get_token_store",
]
