"""
Email lookup: send an end customer a summary of their quotes and invoices.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from app.models.oauth import JobberAccount
from app.models.usage import UsageLogType
from app.schemas.jobber import Client, Invoice, Quote
from app.schemas.lookup import LookupResult, LookupStats

logger = logging.getLogger(__name__)

LOOKUP_ROUTE = "send-lookup-email"
CLIENT_NOT_FOUND_MESSAGE = "Client's email could not be found in Jobber."


class AccountNotFoundError(LookupError):
    """Raised when no linked Jobber account matches a public id."""


class LookupEmailService:
    """Resolve a business by public id and email its client their documents."""

    def __init__(
        self,
        *,
        store: Any,
        token_manager: Any,
        graphql_client: Any,
        mailer: Any,
    ) -> None:
        self._store = store
        self._tokens = token_manager
        self._jobber = graphql_client
        self._mailer = mailer

    async def send_lookup(self, *, public_id: str, email: str) -> LookupResult:
        account = self._store.get_account_by_public_id(public_id)
        if account is None:
            raise AccountNotFoundError(f"No Jobber account with public id {public_id}.")

        self._log(account, UsageLogType.API_CALL, {"requestEmail": email})

        token = await self._tokens.get_valid_token(user_id=account.user_id)

        client = await self._jobber.find_client_by_email(email, token)
        if client is None:
            self._log(account, UsageLogType.NO_CLIENT_FOUND, {"requestEmail": email})
            return LookupResult(success=False, message=CLIENT_NOT_FOUND_MESSAGE)

        invoices, quotes = await asyncio.gather(
            self._jobber.fetch_invoices(client.id, token),
            self._jobber.fetch_quotes(client.id, token),
        )

        self._log(
            account,
            UsageLogType.EMAIL_SENT,
            {
                "clientId": client.id,
                "requestEmail": email,
                "invoiceCount": len(invoices),
                "quoteCount": len(quotes),
            },
        )

        await self._mailer.send(
            to=email,
            subject=build_subject(account.name),
            text=render_summary(
                business_name=account.name or "",
                client=client,
                invoices=invoices,
                quotes=quotes,
            ),
        )
        logger.info(
            "Sent lookup email for account %s (%d invoices, %d quotes)",
            account.public_id,
            len(invoices),
            len(quotes),
        )
        return LookupResult(success=True, message="Email sent")

    def _log(
        self,
        account: JobberAccount,
        log_type: UsageLogType,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._store.log_action(
            user_id=account.user_id,
            jobber_account_id=account.id,
            log_type=log_type,
            route=LOOKUP_ROUTE,
            metadata=metadata,
        )


def lookup_stats(store: Any, account: JobberAccount) -> LookupStats:
    """Count lookups received and emails sent through the lookup route for an account."""

    def _count(log_type: UsageLogType) -> int:
        return store.count_usage(
            user_id=account.user_id,
            jobber_account_id=account.id,
            route=LOOKUP_ROUTE,
            log_type=log_type,
        )

    return LookupStats(
        api_calls=_count(UsageLogType.API_CALL),
        emails_sent=_count(UsageLogType.EMAIL_SENT),
    )


def build_subject(business_name: Optional[str]) -> str:
    prefix = f"{business_name} " if business_name else ""
    return f"Your {prefix}quotes & invoices"


def _money(value: float) -> str:
    return f"${value:,.2f}"


def render_summary(
    *,
    business_name: str,
    client: Client,
    invoices: List[Invoice],
    quotes: List[Quote],
) -> str:
    """Plain-text body listing every quote and invoice on the client's record."""
    greeting = f"Hi {client.display_name}," if client.display_name else "Hi,"
    sender = business_name or "us"
    lines = [greeting, "", f"Here is a summary of your quotes and invoices with {sender}.", ""]

    lines.append("Quotes")
    if not quotes:
        lines.append("  No quotes on file.")
    for quote in quotes:
        title = f" - {quote.title}" if quote.title else ""
        lines.append(
            f"  #{quote.quoteNumber}{title}: {quote.quoteStatus}, total {_money(quote.amounts.total)}"
        )
        if quote.clientHubUri:
            lines.append(f"    View: {quote.clientHubUri}")

    lines.extend(["", "Invoices"])
    if not invoices:
        lines.append("  No invoices on file.")
    for invoice in invoices:
        subject = f" - {invoice.subject}" if invoice.subject else ""
        due = f", due {invoice.dueDate}" if invoice.dueDate else ""
        lines.append(
            f"  #{invoice.invoiceNumber}{subject}: {invoice.invoiceStatus}, "
            f"total {_money(invoice.amounts.total)}, "
            f"balance {_money(invoice.amounts.invoiceBalance)}{due}"
        )
        if invoice.clientHubUri:
            lines.append(f"    View: {invoice.clientHubUri}")

    return "\n".join(lines) + "\n"


__all__ = [
    "AccountNotFoundError",
    "CLIENT_NOT_FOUND_MESSAGE",
    "LOOKUP_ROUTE",
    "LookupEmailService",
    "build_subject",
    "lookup_stats",
    "render_summary",
]
