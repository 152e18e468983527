"""Service layer exports."""

from .accounts import AccountSyncService
from .lookup import LookupEmailService
from .token_cipher import TokenCipherService
from .token_manager import JobberTokenManager

__all__ = [
    "AccountSyncService",
    "JobberTokenManager",
    "LookupEmailService",
    "TokenCipherService",
]
