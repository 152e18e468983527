"""Client wrapper for the Jobber GraphQL API."""

from __future__ import annotations

from textwrap import dedent
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.core.config import JobberSettings
from app.schemas.jobber import (
    Account,
    AccountResponse,
    Client,
    ClientDocumentsResponse,
    ClientEmailsResponse,
    Invoice,
    Quote,
)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

_CLIENT_BY_EMAIL_QUERY = dedent(
    """
    query ClientQuery($email: String!) {
      clientEmails(searchTerm: $email) {
        nodes {
          client {
            id
            createdAt
            name
            companyName
            isCompany
          }
        }
      }
    }
    """
)

_INVOICES_QUERY = dedent(
    """
    query InvoiceQuery($clientId: ID!) {
      client(id: $clientId) {
        invoices {
          nodes {
            id
            amounts {
              total
              invoiceBalance
            }
            invoiceNumber
            invoiceStatus
            issuedDate
            dueDate
            subject
            clientHubUri
          }
        }
      }
    }
    """
)

_QUOTES_QUERY = dedent(
    """
    query QuoteQuery($clientId: ID!) {
      client(id: $clientId) {
        quotes {
          nodes {
            id
            amounts {
              total
            }
            quoteNumber
            quoteStatus
            message
            title
            clientHubUri
          }
        }
      }
    }
    """
)

_ACCOUNT_QUERY = dedent(
    """
    query AccountQuery {
      account {
        id
        name
        signupName
        industry
        phone
      }
    }
    """
)


class JobberAPIError(RuntimeError):
    """Raised when a Jobber GraphQL request fails or returns unexpected data."""


class JobberGraphQLClient:
    """Look up clients, invoices, quotes and account details on Jobber."""

    def __init__(
        self,
        settings: JobberSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _headers(self, token: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
            "X-JOBBER-GRAPHQL-VERSION": self._settings.graphql_version,
        }

    async def _execute(
        self,
        *,
        token: str,
        query: str,
        response_model: Type[ResponseT],
        variables: Optional[Dict[str, Any]] = None,
    ) -> ResponseT:
        body: Dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    str(self._settings.graphql_url),
                    json=body,
                    headers=self._headers(token),
                )
        except httpx.HTTPError as exc:
            raise JobberAPIError(f"Jobber GraphQL request failed: {exc.__class__.__name__}") from exc

        if response.status_code != httpx.codes.OK:
            raise JobberAPIError(f"Jobber GraphQL returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise JobberAPIError("Jobber GraphQL returned a non-JSON body") from exc

        if isinstance(payload, dict) and payload.get("errors"):
            messages = "; ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in payload["errors"]
            )
            raise JobberAPIError(f"Jobber GraphQL errors: {messages}")

        try:
            return response_model.model_validate(payload)
        except ValidationError as exc:
            raise JobberAPIError(
                f"Unexpected Jobber GraphQL payload for {response_model.__name__}"
            ) from exc

    async def find_client_by_email(self, email: str, token: str) -> Optional[Client]:
        """Return the most recently created client with ``email``, if any."""
        result = await self._execute(
            token=token,
            query=_CLIENT_BY_EMAIL_QUERY,
            variables={"email": email},
            response_model=ClientEmailsResponse,
        )
        clients = [node.client for node in result.data.clientEmails.nodes]
        if not clients:
            return None
        return max(clients, key=lambda client: client.createdAt)

    async def fetch_invoices(self, client_id: str, token: str) -> List[Invoice]:
        result = await self._execute(
            token=token,
            query=_INVOICES_QUERY,
            variables={"clientId": client_id},
            response_model=ClientDocumentsResponse,
        )
        invoices = result.data.client.invoices
        return list(invoices.nodes) if invoices else []

    async def fetch_quotes(self, client_id: str, token: str) -> List[Quote]:
        result = await self._execute(
            token=token,
            query=_QUOTES_QUERY,
            variables={"clientId": client_id},
            response_model=ClientDocumentsResponse,
        )
        quotes = result.data.client.quotes
        return list(quotes.nodes) if quotes else []

    async def fetch_account(self, token: str) -> Account:
        result = await self._execute(
            token=token, query=_ACCOUNT_QUERY, response_model=AccountResponse
        )
        return result.data.account


__all__ = ["JobberAPIError", "JobberGraphQLClient"]
