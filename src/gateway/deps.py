"""FastAPI dependencies shared by the API routers.

Everything is read from ``app.state`` (wired by create_app) and
``request.state`` (set by the request middleware).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import Request

from src.shared.errors import ValidationError

if TYPE_CHECKING:
    from src.gateway.middleware.auth import IdentityClaims
    from src.gateway.middleware.user_context import Resolution, UserContextResolver
    from src.ports.record_store import RecordStorePort
    from src.shared.types import UserContext


def get_store(request: Request) -> RecordStorePort:
    return request.app.state.store


def get_resolver(request: Request) -> UserContextResolver:
    return request.app.state.user_context_resolver


def get_identity(request: Request) -> IdentityClaims | None:
    return getattr(request.state, "identity", None)


async def get_resolution(request: Request) -> Resolution:
    return await get_resolver(request).resolve(get_identity(request))


async def require_user_context(request: Request) -> UserContext:
    """Dependency: the caller's UserContext (401 / 403 otherwise)."""
    return await get_resolver(request).require(get_identity(request))


async def read_json_body(request: Request) -> Any:
    """Parse the request body as JSON, raising ValidationError (400) on bad input."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
