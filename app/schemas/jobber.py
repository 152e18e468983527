"""
Pydantic models validating payloads returned by the Jobber API.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

_JOBBER_EXPIRY_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def parse_jobber_expiry(value: str) -> datetime:
    """Parse ``"2024-04-09 21:04:31 UTC"`` or ISO 8601 into an aware UTC datetime."""
    raw = value.strip()
    try:
        return datetime.strptime(raw, _JOBBER_EXPIRY_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Unrecognised expiry timestamp {value!r}") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class TokenGrant(BaseModel):
    """Token pair returned by the Jobber OAuth token endpoint.

    Jobber sends an absolute ``expires_at``; ``expires_in`` is accepted only
    when ``expires_at`` is absent.
    """

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: Optional[datetime] = Field(
        None, description='Absolute expiry, e.g. "2024-04-09 21:04:31 UTC".'
    )
    expires_in: Optional[int] = Field(None, ge=0)

    @field_validator("expires_at", mode="before")
    @classmethod
    def _jobber_expiry(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_jobber_expiry(value)
        return value

    @model_validator(mode="after")
    def _has_expiry(self) -> "TokenGrant":
        if self.expires_at is None and self.expires_in is None:
            raise ValueError("Token response carries neither expires_at nor expires_in.")
        return self

    def resolve_expiry(self, *, issued_at: datetime) -> datetime:
        if self.expires_at is not None:
            return self.expires_at
        return issued_at + timedelta(seconds=self.expires_in)


class Client(BaseModel):
    id: str
    createdAt: datetime
    name: Optional[str] = None
    companyName: Optional[str] = None
    isCompany: bool = False

    @property
    def display_name(self) -> str:
        if self.isCompany and self.companyName:
            return self.companyName
        return self.name or self.companyName or ""


class InvoiceAmounts(BaseModel):
    total: float
    invoiceBalance: float


class Invoice(BaseModel):
    id: str
    amounts: InvoiceAmounts
    invoiceNumber: str
    invoiceStatus: str
    issuedDate: Optional[str] = None
    dueDate: Optional[str] = None
    subject: Optional[str] = None
    clientHubUri: Optional[str] = None


class QuoteAmounts(BaseModel):
    total: float


class Quote(BaseModel):
    id: str
    amounts: QuoteAmounts
    quoteNumber: str
    quoteStatus: str
    message: Optional[str] = None
    title: Optional[str] = None
    clientHubUri: Optional[str] = None


class Account(BaseModel):
    id: str
    name: Optional[str] = None
    signupName: Optional[str] = None
    industry: Optional[str] = None
    phone: Optional[str] = None


class _ClientEdge(BaseModel):
    client: Client


class _ClientEmailNodes(BaseModel):
    nodes: List[_ClientEdge]


class _ClientEmailsData(BaseModel):
    clientEmails: _ClientEmailNodes


class ClientEmailsResponse(BaseModel):
    data: _ClientEmailsData


class _InvoiceNodes(BaseModel):
    nodes: List[Invoice]


class _QuoteNodes(BaseModel):
    nodes: List[Quote]


class _ClientDocuments(BaseModel):
    invoices: Optional[_InvoiceNodes] = None
    quotes: Optional[_QuoteNodes] = None


class _ClientDocumentsData(BaseModel):
    client: _ClientDocuments


class ClientDocumentsResponse(BaseModel):
    data: _ClientDocumentsData


class _AccountData(BaseModel):
    account: Account


class AccountResponse(BaseModel):
    data: _AccountData


__all__ = [
    "Account",
    "AccountResponse",
    "Client",
    "ClientDocumentsResponse",
    "ClientEmailsResponse",
    "Invoice",
    "Quote",
    "TokenGrant",
    "parse_jobber_expiry",
]
