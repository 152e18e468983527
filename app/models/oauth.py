"""
Domain models for OAuth token persistence and account connection health.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TokenRecord(BaseModel):
    """One generation of a user's Jobber access/refresh token pair."""

    user_id: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("expires_at", "created_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def expires_within(self, window: timedelta, *, now: datetime | None = None) -> bool:
        """True when the access token is expired or expires inside ``window``."""
        reference = now or utcnow()
        return self.expires_at <= reference + window


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class DisconnectReason(str, Enum):
    """Why a refresh could not produce a usable token."""

    TRANSPORT_ERROR = "transport_error"
    INVALID_RESPONSE = "invalid_response"
    STORE_ERROR = "store_error"
    STILL_EXPIRING = "still_expiring"


@dataclass(frozen=True, slots=True)
class TokenConnected:
    """A usable access token. ``refreshed`` is set only for the caller whose write landed."""

    access_token: str
    refreshed: bool


@dataclass(frozen=True, slots=True)
class TokenDisconnected:
    reason: DisconnectReason
    detail: str = ""


RefreshOutcome = Union[TokenConnected, TokenDisconnected]


class JobberAccount(BaseModel):
    """A Jobber account linked to one of our users."""

    id: int
    public_id: str
    user_id: str
    jobber_id: str
    name: Optional[str] = None
    signup_name: Optional[str] = None
    industry: Optional[str] = None
    phone: Optional[str] = None
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    disconnected_at: Optional[datetime] = None


class AccountStatus(BaseModel):
    """Public view of an account's connection health."""

    name: Optional[str] = None
    public_id: str
    connection_status: ConnectionStatus
    disconnected_at: Optional[datetime] = None


__all__ = [
    "AccountStatus",
    "ConnectionStatus",
    "DisconnectReason",
    "JobberAccount",
    "RefreshOutcome",
    "TokenConnected",
    "TokenDisconnected",
    "TokenRecord",
    "ensure_utc",
    "utcnow",
]
