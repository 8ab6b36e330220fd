"""Organization API.

- GET   /api/v1/organizations/{org_id}          -> organization detail
- PATCH /api/v1/organizations/{org_id}          -> update (own org, admin)
- GET   /api/v1/organizations/{org_id}/members  -> users of the organization
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse  # noqa: TC002 - needed at runtime by FastAPI

from src.domain.records import prepare_update
from src.domain.registry import ORGANIZATIONS, USERS
from src.gateway.api.params import query_params
from src.gateway.deps import get_store, read_json_body, require_user_context
from src.gateway.envelope import create_success_response
from src.gateway.middleware.user_context import check_organization_access, require_permission
from src.infra.auth.rbac import Permission
from src.shared.casing import camelize_row, camelize_rows
from src.shared.errors import OrgIsolationError
from src.shared.query_filter import build_query_spec
from src.shared.types import UserContext  # noqa: TC001 - needed at runtime by FastAPI

logger = logging.getLogger(__name__)


def create_organization_router() -> APIRouter:
    """Create organization API router."""
    router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])

    @router.get("/{org_id}")
    async def get_organization(
        org_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        check_organization_access(ctx, org_id)
        row = await get_store(request).get(ORGANIZATIONS.table, org_id)
        return create_success_response(camelize_row(row))

    @router.patch("/{org_id}")
    async def update_organization(
        org_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        """Update the caller's own organization. Admins only."""
        if org_id != ctx.organization_id:
            raise OrgIsolationError
        require_permission(ctx, Permission.MANAGE_ORGANIZATION)

        changes = prepare_update(ORGANIZATIONS, ORGANIZATIONS.parse(body))
        row = await get_store(request).update(ORGANIZATIONS.table, org_id, changes)
        logger.info("Organization %s updated by %s", org_id, ctx.user_id)
        return create_success_response(camelize_row(row))

    @router.get("/{org_id}/members")
    async def list_members(
        org_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        check_organization_access(ctx, org_id)
        query = build_query_spec(
            query_params(request),
            USERS.query_fields,
            default_sort=USERS.default_sort,
        )
        rows = await get_store(request).select(
            USERS.table, query, scope={"organization_id": org_id}
        )
        return create_success_response(camelize_rows(rows))

    return router
