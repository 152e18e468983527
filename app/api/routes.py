"""
FastAPI routes for the Jobber lookup service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import EmailStr

from app.clients.jobber_auth import OAuthTokenNotFoundError
from app.clients.jobber_graphql import JobberAPIError
from app.clients.resend_mailer import EmailDeliveryError
from app.clients.sqlite_store import TokenStoreError
from app.dependencies import get_lookup_service, get_sqlite_store
from app.models.oauth import AccountStatus
from app.schemas import ErrorResponse, LookupResult, LookupStats
from app.services.lookup import AccountNotFoundError, lookup_stats
from app.services.token_manager import TokenRefreshFailedError

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(status: HTTPStatus, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ErrorResponse(error=message).model_dump())


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get(
    "/v1/send-lookup-email",
    status_code=HTTPStatus.OK,
    response_model=LookupResult,
    responses={
        404: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def send_lookup_email(
    lookup_service: Annotated[Any, Depends(get_lookup_service)],
    public_id: str = Query(..., alias="id", description="Public id of the Jobber account."),
    email: EmailStr = Query(..., description="Email address of the business's client."),
) -> Any:
    """
    Email a client the quotes and invoices a business holds for them.

    Public endpoint: callers identify the business by its public id only.
    """
    try:
        return await lookup_service.send_lookup(public_id=public_id, email=str(email))
    except AccountNotFoundError:
        return _error(HTTPStatus.NOT_FOUND, "Account not found")
    except (OAuthTokenNotFoundError, TokenRefreshFailedError) as exc:
        logger.warning("Lookup for account %s has no usable token: %s", public_id, exc)
        return _error(HTTPStatus.UNAUTHORIZED, "Failed to get access token")
    except EmailDeliveryError as exc:
        logger.error("Lookup email for account %s was not delivered: %s", public_id, exc)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, "Could not send email")
    except (JobberAPIError, TokenStoreError) as exc:
        logger.error("Lookup for account %s failed: %s", public_id, exc)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error")


@router.get(
    "/jobber/accounts/status",
    status_code=HTTPStatus.OK,
    response_model=List[AccountStatus],
    responses={500: {"model": ErrorResponse}},
)
async def list_account_statuses(
    store: Annotated[Any, Depends(get_sqlite_store)],
) -> List[AccountStatus]:
    """Connection health of every linked account, for the public status page."""
    return store.list_account_statuses()


@router.get(
    "/jobber/accounts/{public_id}/lookup-stats",
    status_code=HTTPStatus.OK,
    response_model=LookupStats,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_lookup_stats(
    public_id: str,
    store: Annotated[Any, Depends(get_sqlite_store)],
) -> Any:
    """Lookups received and emails sent for one linked account."""
    account = store.get_account_by_public_id(public_id)
    if account is None:
        return _error(HTTPStatus.NOT_FOUND, "Account not found")
    return lookup_stats(store, account)
