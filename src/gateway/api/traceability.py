"""Traceability request API.

A trace request is sent by a requesting organization (manufacturer) to a
target organization (supplier). Both parties see the request; neither can
see requests between other organizations.

- GET   /api/v1/traceability/requests/outgoing  -> sent by the caller's org
- GET   /api/v1/traceability/requests/incoming  -> addressed to the caller's org
- POST  /api/v1/traceability/requests           -> send a request
- GET   /api/v1/traceability/requests/{id}      -> detail (either party)
- PATCH /api/v1/traceability/requests/{id}      -> target changes status,
                                                   requester changes the rest
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse  # noqa: TC002 - needed at runtime by FastAPI

from src.domain.records import prepare_create, prepare_update
from src.domain.registry import NOTIFICATIONS, TRACE_REQUESTS
from src.gateway.api.params import query_params
from src.gateway.deps import get_store, read_json_body, require_user_context
from src.gateway.envelope import create_success_response
from src.gateway.middleware.user_context import require_permission
from src.infra.auth.rbac import Permission
from src.shared.casing import camelize_row, camelize_rows
from src.shared.errors import AuthorizationError, NotFoundError, StoreError, ValidationError
from src.shared.logging.error_handler import log_structured_error
from src.shared.query_filter import build_query_spec
from src.shared.timestamps import add_create_timestamps
from src.shared.types import UserContext  # noqa: TC001 - needed at runtime by FastAPI

if TYPE_CHECKING:
    from src.ports.record_store import RecordStorePort

logger = logging.getLogger(__name__)

REQUESTER_FIELD = "requesting_organization_id"
TARGET_FIELD = "target_organization_id"
STATUS_FIELD = "status"

_NOTIFICATION_PRIORITY = {"low": "low", "medium": "medium", "high": "high", "urgent": "high"}


async def _notify(
    store: RecordStorePort,
    organization_id: str,
    *,
    title: str,
    message: str,
    priority: str,
    request_id: str,
) -> None:
    """Insert a notification for ``organization_id``; failures are logged only."""
    record = add_create_timestamps(
        {
            "organization_id": organization_id,
            "type": "trace_request",
            "title": title,
            "message": message,
            "priority": _NOTIFICATION_PRIORITY.get(priority, "medium"),
            "is_read": False,
            "action_url": f"/traceability/requests/{request_id}",
        }
    )
    try:
        await store.insert(NOTIFICATIONS.table, record)
    except StoreError as exc:
        log_structured_error(
            logger,
            exc,
            org_id=organization_id,
            context={"trace_request_id": request_id},
            level=logging.WARNING,
        )


def _visible_request(row: dict[str, Any], ctx: UserContext, request_id: str) -> dict[str, Any]:
    if ctx.organization_id not in (str(row[REQUESTER_FIELD]), str(row[TARGET_FIELD])):
        raise NotFoundError("Trace request", request_id)
    return row


def create_traceability_router() -> APIRouter:
    """Create traceability API router."""
    router = APIRouter(prefix="/api/v1/traceability/requests", tags=["traceability"])

    async def _list(request: Request, scope_field: str, ctx: UserContext) -> JSONResponse:
        require_permission(ctx, Permission.READ_DATA)
        query = build_query_spec(
            query_params(request),
            TRACE_REQUESTS.query_fields,
            default_sort=TRACE_REQUESTS.default_sort,
        )
        rows = await get_store(request).select(
            TRACE_REQUESTS.table, query, scope={scope_field: ctx.organization_id}
        )
        return create_success_response(camelize_rows(rows))

    @router.get("/outgoing")
    async def list_outgoing(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        return await _list(request, REQUESTER_FIELD, ctx)

    @router.get("/incoming")
    async def list_incoming(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        return await _list(request, TARGET_FIELD, ctx)

    @router.post("")
    async def create_trace_request(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        require_permission(ctx, Permission.WRITE_DATA)
        record = prepare_create(TRACE_REQUESTS, TRACE_REQUESTS.parse(body), ctx)
        if record[TARGET_FIELD] == ctx.organization_id:
            raise ValidationError(
                "Cannot send a trace request to your own organization", field=TARGET_FIELD
            )

        store = get_store(request)
        row = await store.insert(TRACE_REQUESTS.table, record)
        logger.info(
            "Trace request %s sent from org %s to org %s",
            row["id"],
            ctx.organization_id,
            row[TARGET_FIELD],
        )
        await _notify(
            store,
            str(row[TARGET_FIELD]),
            title="New traceability request",
            message=row.get("message") or "You have received a new traceability request.",
            priority=row.get("priority") or "medium",
            request_id=str(row["id"]),
        )
        return create_success_response(camelize_row(row), status_code=201)

    @router.get("/{request_id}")
    async def get_trace_request(
        request_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        require_permission(ctx, Permission.READ_DATA)
        row = await get_store(request).get(TRACE_REQUESTS.table, request_id)
        return create_success_response(camelize_row(_visible_request(row, ctx, request_id)))

    @router.patch("/{request_id}")
    async def update_trace_request(
        request_id: str,
        request: Request,
        ctx: UserContext = Depends(require_user_context),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        """Update a trace request.

        The target organization answers by changing ``status`` and nothing
        else (RESPOND_REQUESTS). The requesting organization may edit every
        other field (WRITE_DATA).
        """
        store = get_store(request)
        current = _visible_request(
            await store.get(TRACE_REQUESTS.table, request_id), ctx, request_id
        )
        payload = TRACE_REQUESTS.parse(body)
        is_target = ctx.organization_id == str(current[TARGET_FIELD])
        require_permission(
            ctx, Permission.RESPOND_REQUESTS if is_target else Permission.WRITE_DATA
        )

        if is_target and set(payload) - {STATUS_FIELD}:
            raise AuthorizationError("Only the status of an incoming request can be changed")
        if not is_target and STATUS_FIELD in payload:
            raise AuthorizationError("Only the receiving organization can change the status")

        changes = prepare_update(TRACE_REQUESTS, payload, immutable=(TARGET_FIELD,))
        row = await store.update(TRACE_REQUESTS.table, request_id, changes)

        if STATUS_FIELD in changes and changes[STATUS_FIELD] != current.get(STATUS_FIELD):
            logger.info(
                "Trace request %s status %s -> %s (by org %s)",
                request_id,
                current.get(STATUS_FIELD),
                changes[STATUS_FIELD],
                ctx.organization_id,
            )
            await _notify(
                store,
                str(row[REQUESTER_FIELD]),
                title="Traceability request updated",
                message=f"Request status changed to {changes[STATUS_FIELD]}.",
                priority=row.get("priority") or "medium",
                request_id=str(row["id"]),
            )
        return create_success_response(camelize_row(row))

    return router
