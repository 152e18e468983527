"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBTokenStore
from .jobber_auth import JobberOAuthClient
from .jobber_graphql import JobberGraphQLClient
from .resend_mailer import ResendMailer
from .sqlite_store import SQLiteStore

__all__ = [
    "DynamoDBTokenStore",
    "JobberGraphQLClient",
    "JobberOAuthClient",
    "ResendMailer",
    "SQLiteStore",
]
