"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_account_sync_service,
    get_jobber_graphql_client,
    get_jobber_oauth_client,
    get_lookup_service,
    get_mailer,
    get_sqlite_store,
    get_token_cipher_service,
    get_token_manager,
    get_token_store,
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
