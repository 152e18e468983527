"""Public schema exports."""

from .jobber import Account, Client, Invoice, Quote, TokenGrant
from .lookup import ErrorResponse, LookupResult, LookupStats

__all__ = [
    "Account",
    "Client",
    "ErrorResponse",
    "Invoice",
    "LookupResult",
    "LookupStats",
    "Quote",
    "TokenGrant",
]
