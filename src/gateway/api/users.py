"""User API.

- GET   /api/v1/users/current    -> caller profile (or the onboarding view)
- GET   /api/v1/users            -> members of the caller's organization
- PATCH /api/v1/users/{user_id}  -> admin changes a member's role / active flag
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse  # noqa: TC002 - needed at runtime by FastAPI

from src.domain.records import prepare_update
from src.domain.registry import ORGANIZATIONS, USERS
from src.gateway.api.params import query_params
from src.gateway.deps import get_resolution, get_store, read_json_body, require_user_context
from src.gateway.envelope import create_success_response
from src.gateway.middleware.user_context import (
    Resolution,  # noqa: TC001 - needed at runtime by FastAPI
    ResolutionStatus,
    require_admin,
)
from src.shared.casing import camelize_row, camelize_rows
from src.shared.errors import AuthenticationError, StoreError, StoreErrorCode, ValidationError
from src.shared.query_filter import build_query_spec
from src.shared.types import UserContext  # noqa: TC001 - needed at runtime by FastAPI

logger = logging.getLogger(__name__)


def create_user_router() -> APIRouter:
    """Create user API router."""
    router = APIRouter(prefix="/api/v1/users", tags=["users"])

    @router.get("/current")
    async def get_current_user(
        request: Request,
        resolution: Resolution = Depends(get_resolution),
    ) -> JSONResponse:
        """Return the caller's user record and organization.

        An authenticated caller without a user record gets a 200 with
        ``needsOnboarding`` instead of an error, so the client can route
        to onboarding.
        """
        if resolution.status is ResolutionStatus.UNAUTHENTICATED:
            raise AuthenticationError
        if resolution.status is ResolutionStatus.UNONBOARDED:
            return create_success_response(
                {
                    "id": resolution.identity_id,
                    "email": resolution.email,
                    "exists": False,
                    "needsOnboarding": True,
                }
            )

        store = get_store(request)
        ctx = resolution.context
        assert ctx is not None
        user = await store.get(USERS.table, ctx.user_id)
        try:
            organization: dict[str, Any] | None = camelize_row(
                await store.get(ORGANIZATIONS.table, ctx.organization_id)
            )
        except StoreError as exc:
            if exc.store_code != StoreErrorCode.NO_ROWS:
                raise
            organization = None

        return create_success_response(
            {
                **camelize_row(user),
                "email": ctx.email,
                "organizationRole": ctx.organization_role.value,
                "isAdmin": ctx.is_admin,
                "organization": organization,
                "exists": True,
                "needsOnboarding": False,
            }
        )

    @router.get("")
    async def list_users(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        query = build_query_spec(
            query_params(request),
            USERS.query_fields,
            default_sort=USERS.default_sort,
        )
        rows = await get_store(request).select(
            USERS.table, query, scope={"organization_id": ctx.organization_id}
        )
        return create_success_response(camelize_rows(rows))

    @router.patch("/{user_id}")
    async def update_user(
        user_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        """Change a member's role or active flag (admin only)."""
        require_admin(ctx)
        changes = prepare_update(USERS, USERS.parse(body))
        if user_id == ctx.user_id:
            raise ValidationError("Admins cannot change their own role or status")

        row = await get_store(request).update(
            USERS.table,
            user_id,
            changes,
            scope={"organization_id": ctx.organization_id},
        )
        logger.info(
            "User %s updated by %s (org=%s, fields=%s)",
            user_id,
            ctx.user_id,
            ctx.organization_id,
            sorted(k for k in changes if k != "updated_at"),
        )
        return create_success_response(camelize_row(row))

    return router
