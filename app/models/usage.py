"""Usage log vocabulary for the public lookup endpoint."""

from enum import Enum


class UsageLogType(str, Enum):
    """One row is written per action, so a single request may log several."""

    API_CALL = "api_call"
    EMAIL_SENT = "email_sent"
    NO_CLIENT_FOUND = "no_client_found"


__all__ = ["UsageLogType"]
