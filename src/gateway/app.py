"""FastAPI application factory.

- User API:  /api/v1/*  (bearer token, resolved per request)
- Webhooks:  /api/v1/webhooks/*  (svix signature instead of bearer token)
- healthz:   exempt from auth
- docs:      exempt from auth

Every response, including errors raised anywhere below the routers, is a
response envelope and carries the request id in ``X-Request-ID``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.domain.registry import ORGANIZATIONS, RESOURCE_SCHEMAS
from src.gateway.api.onboarding import create_invitation_router, create_onboarding_router
from src.gateway.api.organizations import create_organization_router
from src.gateway.api.resources import create_resource_router
from src.gateway.api.traceability import create_traceability_router
from src.gateway.api.users import create_user_router
from src.gateway.api.webhooks import WEBHOOK_PATH, create_webhook_router
from src.gateway.envelope import (
    create_error_response,
    create_success_response,
    handle_database_error,
)
from src.gateway.middleware.auth import decode_token, extract_bearer_token
from src.gateway.middleware.user_context import UserContextResolver
from src.shared.errors import (
    AuthenticationError,
    OnboardingRequiredError,
    ServiceUnavailableError,
    StoreError,
    TraceHubError,
)
from src.shared.logging.error_handler import log_structured_error
from src.shared.request_context import REQUEST_ID_HEADER, request_scope
from src.shared.types import Pagination, QuerySpec

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from src.ports.record_store import RecordStorePort

logger = logging.getLogger(__name__)

_EXEMPT_PATHS = frozenset(
    {
        "/healthz",
        "/docs",
        "/openapi.json",
        "/redoc",
        WEBHOOK_PATH,
    }
)

_HTTP_ERROR_MESSAGES = {
    404: "Not found",
    405: "Method not allowed",
}


def create_app(
    *,
    store: RecordStorePort,
    jwt_secret: str | None = None,
    cors_origins: list[str] | None = None,
    webhook_secret: str | None = None,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: RecordStorePort every router reads and writes through.
        jwt_secret: Bearer token secret. Falls back to JWT_SECRET_KEY env var.
        cors_origins: Allowed CORS origins. Falls back to CORS_ORIGINS env var.
        webhook_secret: svix signing secret for identity webhooks. Falls
            back to IDENTITY_WEBHOOK_SECRET; webhooks answer 503 without it.
        lifespan: Async context manager factory for startup/shutdown lifecycle.

    Returns:
        Configured FastAPI application with all routers mounted.
    """
    secret = jwt_secret or os.environ.get("JWT_SECRET_KEY", "")
    if not secret:
        msg = "JWT_SECRET_KEY must be provided via argument or environment variable"
        raise ValueError(msg)

    origins = cors_origins or [
        o.strip() for o in os.environ.get("CORS_ORIGINS", "").split(",") if o.strip()
    ]

    app = FastAPI(
        title="Traceability Hub API",
        description="Multi-tenant supply-chain traceability backend",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.jwt_secret = secret
    if webhook_secret is None:
        webhook_secret = os.environ.get("IDENTITY_WEBHOOK_SECRET", "")
    app.state.webhook_secret = webhook_secret
    app.state.store = store
    app.state.user_context_resolver = UserContextResolver(store=store)

    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
            allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
            expose_headers=[REQUEST_ID_HEADER],
        )

    # -- Error handlers (most specific class wins) --

    @app.exception_handler(OnboardingRequiredError)
    async def _onboarding_required(_: Request, exc: OnboardingRequiredError) -> JSONResponse:
        return create_error_response(str(exc), exc.status_code, extra={"needsOnboarding": True})

    @app.exception_handler(StoreError)
    async def _store_error(_: Request, exc: StoreError) -> JSONResponse:
        return handle_database_error(exc)

    @app.exception_handler(TraceHubError)
    async def _tracehub_error(_: Request, exc: TraceHubError) -> JSONResponse:
        if exc.status_code >= 500:
            log_structured_error(logger, exc)
        return create_error_response(str(exc), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            loc = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"Invalid {loc or 'request'}: {errors[0].get('msg', 'invalid value')}"
        else:
            message = "Invalid request"
        return create_error_response(message, 400)

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) and exc.detail else ""
        return create_error_response(
            message or _HTTP_ERROR_MESSAGES.get(exc.status_code, f"HTTP {exc.status_code}"),
            exc.status_code,
        )

    # -- Request middleware: request id + bearer token --

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Response:
        with request_scope(request.headers.get(REQUEST_ID_HEADER)) as request_id:
            request.state.request_id = request_id
            request.state.identity = None

            token = extract_bearer_token(request.headers.get("authorization"))
            if token and request.url.path not in _EXEMPT_PATHS and request.method != "OPTIONS":
                try:
                    request.state.identity = decode_token(token, secret=secret)
                except AuthenticationError as exc:
                    response: Response = create_error_response(str(exc), exc.status_code)
                    response.headers[REQUEST_ID_HEADER] = request_id
                    return response

            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

    # -- Exempt routes --

    @app.get("/healthz", tags=["system"])
    async def healthz() -> JSONResponse:
        try:
            await store.select(ORGANIZATIONS.table, QuerySpec(pagination=Pagination(limit=1)))
        except StoreError as exc:
            log_structured_error(logger, exc, level=logging.WARNING)
            raise ServiceUnavailableError("record store") from exc
        return create_success_response({"status": "ok"})

    # -- User API: /api/v1/* --

    app.include_router(create_user_router())
    app.include_router(create_organization_router())
    app.include_router(create_onboarding_router())
    app.include_router(create_invitation_router())
    app.include_router(create_traceability_router())
    for path, schema in RESOURCE_SCHEMAS.items():
        app.include_router(create_resource_router(path, schema))

    # -- Webhooks --

    app.include_router(create_webhook_router())

    return app
