"""
FastAPI application entrypoint for the Jobber lookup service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.clients.sqlite_store import TokenStoreError
from app.core.config import AppSettings, get_settings
from app.core.logging import configure_logging
from app.schemas import ErrorResponse

logger = logging.getLogger("app.errors")


def register_exception_handlers(app: FastAPI) -> None:
    """Render storage failures that escape a route as the standard error body."""

    @app.exception_handler(TokenStoreError)
    async def _store_error_handler(request: Request, exc: TokenStoreError) -> JSONResponse:
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error").model_dump(),
        )


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """Factory for the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    # Interactive docs are only served outside production.
    expose_docs = settings.environment != "production"
    app = FastAPI(
        title="Jobber Tools",
        version="0.1.0",
        description="Email lookup of Jobber quotes and invoices for linked accounts.",
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app", "register_exception_handlers"]
