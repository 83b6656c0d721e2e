"""
HTTP Front End — thin FastAPI pass-through to the core

Routes parse the request, call one core operation, and serialize the result.
Infrastructure errors map to status codes here; structured login failures
are returned as bodies.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.adapters import SUPPORTED_SITES, create_adapter
from src.errors import (
    CredentialError,
    CredentialNotFoundError,
    FilterLevelError,
    MarketplaceError,
    SessionAcquisitionError,
    StoreUnavailableError,
)
from src.options.cascade import gather_options
from src.options.models import FilterState, OptionSet
from src.session.broker import SessionBroker

logger = structlog.get_logger(__name__)

_ERROR_STATUS: tuple[tuple[type[MarketplaceError], int], ...] = (
    (CredentialNotFoundError, 404),
    (CredentialError, 400),
    (FilterLevelError, 400),
    (StoreUnavailableError, 503),
    (SessionAcquisitionError, 503),
)


class LoginRequest(BaseModel):
    site: str
    key: str


class OptionsRequest(BaseModel):
    level: str | None = None
    filters: FilterState = Field(default_factory=FilterState)
    sites: dict[str, str] = Field(description="Site name -> credential key")


def _broker(request: Request) -> SessionBroker:
    return request.app.state.broker


def create_app(broker: SessionBroker) -> FastAPI:
    """Build the app around an already-wired broker."""
    app = FastAPI(title="Marketplace Session Broker")
    app.state.broker = broker

    @app.exception_handler(MarketplaceError)
    async def handle_marketplace_error(request: Request, exc: MarketplaceError) -> JSONResponse:
        status = 500
        for error_type, code in _ERROR_STATUS:
            if isinstance(exc, error_type):
                status = code
                break
        logger.error(
            "request_failed",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
            status=status,
            source="api",
        )
        return JSONResponse(status_code=status, content={"error": exc.message, "code": exc.code})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/sites")
    async def list_sites() -> dict[str, dict[str, str]]:
        return {"sites": SUPPORTED_SITES}

    @app.get("/secrets")
    async def list_secrets(request: Request) -> dict[str, list[str]]:
        try:
            keys = await _broker(request).store.list_keys()
        except StoreUnavailableError as e:
            logger.error("list_secrets_failed", error=str(e), source="api")
            keys = []
        return {"secrets": keys}

    @app.post("/login")
    async def login(body: LoginRequest, request: Request) -> JSONResponse:
        try:
            adapter = create_adapter(body.site, _broker(request))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        result = await adapter.login(body.key)
        return JSONResponse(
            status_code=200 if result.success else 401,
            content=result.model_dump(by_alias=True, exclude_none=True),
        )

    @app.post("/options")
    async def options(body: OptionsRequest, request: Request) -> JSONResponse:
        if not body.sites:
            raise HTTPException(status_code=400, detail="At least one site is required")
        try:
            requests = [
                (create_adapter(site, _broker(request)), key)
                for site, key in body.sites.items()
            ]
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        option_set: OptionSet = await gather_options(requests, body.level, body.filters)
        return JSONResponse(content=option_set.model_dump(by_alias=True))

    return app
