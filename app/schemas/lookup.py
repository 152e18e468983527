"""Schemas for the public email lookup endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LookupResult(BaseModel):
    """Outcome reported back to the page embedding the lookup form."""

    success: bool
    message: str = Field(..., description="Human readable summary of the outcome.")


class LookupStats(BaseModel):
    """Lookup usage for one linked account."""

    api_calls: int = Field(..., ge=0)
    emails_sent: int = Field(..., ge=0)


class ErrorResponse(BaseModel):
    error: str


__all__ = ["ErrorResponse", "LookupResult", "LookupStats"]
