"""Generic CRUD router for org-scoped entities.

One router per entry of RESOURCE_SCHEMAS:
- GET    /api/v1/{path}        -> list (filters, sort, pagination)
- POST   /api/v1/{path}        -> create
- GET    /api/v1/{path}/{id}   -> detail
- PATCH  /api/v1/{path}/{id}   -> partial update
- DELETE /api/v1/{path}/{id}   -> delete

Every store call carries the caller's organization as scope, so rows of
another tenant read as 404.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse  # noqa: TC002 - needed at runtime by FastAPI

from src.domain.records import prepare_create, prepare_update
from src.gateway.api.params import query_params
from src.gateway.deps import get_store, read_json_body, require_user_context
from src.gateway.envelope import create_success_response
from src.gateway.middleware.user_context import require_permission
from src.infra.auth.rbac import Permission
from src.shared.casing import camelize_row, camelize_rows
from src.shared.query_filter import build_query_spec
from src.shared.types import UserContext  # noqa: TC001 - needed at runtime by FastAPI

if TYPE_CHECKING:
    from src.domain.registry import EntitySchema

logger = logging.getLogger(__name__)


def create_resource_router(path: str, schema: EntitySchema) -> APIRouter:
    """Create the CRUD router for ``schema`` mounted at ``/api/v1/{path}``."""
    router = APIRouter(prefix=f"/api/v1/{path}", tags=[path])
    scope_field = schema.scope_field or "organization_id"

    def _scope(ctx: UserContext) -> dict[str, Any]:
        return {scope_field: ctx.organization_id}

    @router.get("")
    async def list_records(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        require_permission(ctx, Permission.READ_DATA)
        query = build_query_spec(
            query_params(request),
            schema.query_fields,
            default_sort=schema.default_sort,
        )
        rows = await get_store(request).select(schema.table, query, scope=_scope(ctx))
        return create_success_response(camelize_rows(rows))

    @router.post("")
    async def create_record(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        require_permission(ctx, Permission.WRITE_DATA)
        record = prepare_create(schema, schema.parse(body), ctx)
        row = await get_store(request).insert(schema.table, record)
        logger.info(
            "Created %s %s (org=%s, user=%s)",
            schema.name,
            row.get("id"),
            ctx.organization_id,
            ctx.user_id,
        )
        return create_success_response(camelize_row(row), status_code=201)

    @router.get("/{record_id}")
    async def get_record(
        record_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        require_permission(ctx, Permission.READ_DATA)
        row = await get_store(request).get(schema.table, record_id, scope=_scope(ctx))
        return create_success_response(camelize_row(row))

    @router.patch("/{record_id}")
    async def update_record(
        record_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        require_permission(ctx, Permission.WRITE_DATA)
        changes = prepare_update(schema, schema.parse(body))
        row = await get_store(request).update(
            schema.table, record_id, changes, scope=_scope(ctx)
        )
        return create_success_response(camelize_row(row))

    @router.delete("/{record_id}")
    async def delete_record(
        record_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        require_permission(ctx, Permission.WRITE_DATA)
        await get_store(request).delete(schema.table, record_id, scope=_scope(ctx))
        logger.info("Deleted %s %s (org=%s)", schema.name, record_id, ctx.organization_id)
        return create_success_response({"id": record_id, "deleted": True})

    return router
