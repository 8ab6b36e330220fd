"""Onboarding and invitation API.

Onboarding (callers with a verified identity but no user record):
- GET  /api/v1/onboarding  -> onboarding status + pending invitations
- POST /api/v1/onboarding  -> create an organization, become its admin

Invitations:
- GET  /api/v1/invitations              -> invitations of the caller's org (admin)
- POST /api/v1/invitations              -> invite an email address (admin)
- GET  /api/v1/invitations/pending      -> pending invitations for the caller's email
- POST /api/v1/invitations/{id}/accept  -> join the inviting organization (token)
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse  # noqa: TC002 - needed at runtime by FastAPI

from src.domain.entities import InvitationAcceptWrite, OnboardingWrite
from src.domain.records import prepare_create
from src.domain.registry import INVITATIONS, ORGANIZATIONS, USERS, parse_body
from src.gateway.api.params import query_params
from src.gateway.deps import get_resolution, get_store, read_json_body, require_user_context
from src.gateway.envelope import create_success_response
from src.gateway.middleware.user_context import (
    Resolution,  # noqa: TC001 - needed at runtime by FastAPI
    ResolutionStatus,
    require_permission,
)
from src.infra.auth.rbac import Permission
from src.shared.casing import camelize_row
from src.shared.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from src.shared.logging.error_handler import log_structured_error
from src.shared.payload import sanitize_payload, validate_required_fields
from src.shared.query_filter import build_query_spec
from src.shared.timestamps import add_create_timestamps, add_update_timestamps, utc_now
from src.shared.types import OrganizationRole
from src.shared.types import UserContext  # noqa: TC001 - needed at runtime by FastAPI

if TYPE_CHECKING:
    from src.ports.record_store import RecordStorePort

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=7)
INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_EXPIRED = "expired"

# Never returned outside the create response.
_SECRET_INVITATION_FIELDS = frozenset({"token"})


def _public_invitation(row: dict[str, Any]) -> dict[str, Any]:
    return camelize_row({k: v for k, v in row.items() if k not in _SECRET_INVITATION_FIELDS})


def _require_unonboarded(resolution: Resolution) -> str:
    """Return the caller's identity id, or raise if they cannot onboard."""
    if resolution.status is ResolutionStatus.UNAUTHENTICATED:
        raise AuthenticationError
    if resolution.status is ResolutionStatus.RESOLVED:
        raise ConflictError("User already belongs to an organization")
    assert resolution.identity_id is not None
    return resolution.identity_id


async def find_pending_invitations(
    store: RecordStorePort,
    email: str | None,
) -> list[dict[str, Any]]:
    """Unexpired pending invitation rows for ``email``, newest first."""
    if not email:
        return []
    query = build_query_spec(
        {"email": email.lower(), "status": INVITATION_PENDING},
        INVITATIONS.query_fields,
        default_sort=INVITATIONS.default_sort,
    )
    now = utc_now()
    rows = await store.select(INVITATIONS.table, query)
    return [row for row in rows if row["expires_at"] > now]


async def _pending_invitations_for(
    store: RecordStorePort,
    email: str | None,
) -> list[dict[str, Any]]:
    """Pending invitations addressed to ``email`` with their organization name.

    Invitations whose organization no longer exists are left out.
    """
    rows = await find_pending_invitations(store, email)
    if not rows:
        return []
    org_ids = sorted({str(row["organization_id"]) for row in rows})
    orgs = await store.select(
        ORGANIZATIONS.table,
        build_query_spec({"id_in": ",".join(org_ids)}, ("id",), max_limit=len(org_ids)),
    )
    names = {str(org["id"]): org.get("name") for org in orgs}

    invitations = []
    for row in rows:
        org_id = str(row["organization_id"])
        if org_id not in names:
            logger.warning("Skipping invitation %s: organization %s missing", row["id"], org_id)
            continue
        invitation = _public_invitation(row)
        invitation["organizationName"] = names[org_id]
        invitations.append(invitation)
    return invitations


def create_onboarding_router() -> APIRouter:
    """Create onboarding API router."""
    router = APIRouter(prefix="/api/v1/onboarding", tags=["onboarding"])

    @router.get("")
    async def get_onboarding_status(
        request: Request,
        resolution: Resolution = Depends(get_resolution),
    ) -> JSONResponse:
        if resolution.status is ResolutionStatus.UNAUTHENTICATED:
            raise AuthenticationError
        if resolution.status is ResolutionStatus.RESOLVED:
            assert resolution.context is not None
            return create_success_response(
                {
                    "isOnboarded": True,
                    "organizationId": resolution.context.organization_id,
                    "pendingInvitations": [],
                }
            )
        invitations = await _pending_invitations_for(get_store(request), resolution.email)
        return create_success_response(
            {"isOnboarded": False, "organizationId": None, "pendingInvitations": invitations}
        )

    @router.post("")
    async def complete_onboarding(
        request: Request,
        resolution: Resolution = Depends(get_resolution),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        """Create an organization and the caller's admin user record.

        The two inserts are separate statements. If the user insert fails
        the organization is removed again (best effort) and the original
        error is reported.
        """
        identity_id = _require_unonboarded(resolution)
        payload = parse_body(OnboardingWrite, body)
        validate_required_fields(payload, ("organization_name",))

        store = get_store(request)
        organization = await store.insert(
            ORGANIZATIONS.table,
            add_create_timestamps(
                sanitize_payload(
                    {
                        "name": payload["organization_name"].strip(),
                        "email": payload.get("organization_email"),
                        "address": payload.get("organization_address"),
                    },
                    ORGANIZATIONS.writable,
                    scope_field=None,
                )
            ),
        )

        user_record = {
            "id": identity_id,
            "organization_id": organization["id"],
            "organization_role": OrganizationRole.ADMIN.value,
            "is_active": True,
            "email": resolution.email,
            "first_name": payload.get("first_name"),
            "last_name": payload.get("last_name"),
        }
        user_record = add_create_timestamps(
            sanitize_payload(user_record, user_record.keys(), scope_field=None)
        )
        try:
            user = await store.insert(USERS.table, user_record)
        except StoreError:
            try:
                await store.delete(ORGANIZATIONS.table, organization["id"])
            except StoreError as cleanup_exc:
                log_structured_error(
                    logger,
                    cleanup_exc,
                    org_id=str(organization["id"]),
                    context={"step": "onboarding_cleanup"},
                )
            raise

        logger.info(
            "User %s onboarded as admin of organization %s", identity_id, organization["id"]
        )
        return create_success_response(
            {"user": camelize_row(user), "organization": camelize_row(organization)},
            status_code=201,
        )

    return router


def create_invitation_router() -> APIRouter:
    """Create invitation API router."""
    router = APIRouter(prefix="/api/v1/invitations", tags=["invitations"])

    @router.get("")
    async def list_invitations(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
    ) -> JSONResponse:
        require_permission(ctx, Permission.MANAGE_INVITATIONS)
        query = build_query_spec(
            query_params(request),
            INVITATIONS.query_fields,
            default_sort=INVITATIONS.default_sort,
        )
        rows = await get_store(request).select(
            INVITATIONS.table, query, scope={"organization_id": ctx.organization_id}
        )
        return create_success_response([_public_invitation(row) for row in rows])

    @router.post("")
    async def create_invitation(
        request: Request,
        ctx: UserContext = Depends(require_user_context),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        require_permission(ctx, Permission.MANAGE_INVITATIONS)
        payload = INVITATIONS.parse(body)
        if payload.get("email"):
            payload["email"] = payload["email"].lower()
        record = prepare_create(INVITATIONS, payload, ctx)

        store = get_store(request)
        pending = await store.select(
            INVITATIONS.table,
            build_query_spec(
                {"email": record["email"], "status": INVITATION_PENDING},
                INVITATIONS.query_fields,
            ),
            scope={"organization_id": ctx.organization_id},
        )
        if any(row["expires_at"] > record["created_at"] for row in pending):
            raise ConflictError(f"A pending invitation already exists for {record['email']}")

        record.update(
            status=INVITATION_PENDING,
            token=secrets.token_urlsafe(32),
            expires_at=record["created_at"] + INVITATION_TTL,
        )
        row = await store.insert(INVITATIONS.table, record)
        logger.info(
            "Invitation %s created for org %s by %s",
            row["id"],
            ctx.organization_id,
            ctx.user_id,
        )
        return create_success_response(camelize_row(row), status_code=201)

    @router.get("/pending")
    async def list_pending_invitations(
        request: Request,
        resolution: Resolution = Depends(get_resolution),
    ) -> JSONResponse:
        if resolution.status is ResolutionStatus.UNAUTHENTICATED:
            raise AuthenticationError
        email = resolution.email or (resolution.context.email if resolution.context else None)
        invitations = await _pending_invitations_for(get_store(request), email)
        return create_success_response(invitations)

    @router.post("/{invitation_id}/accept")
    async def accept_invitation(
        invitation_id: str,
        request: Request,
        resolution: Resolution = Depends(get_resolution),
        body: Any = Depends(read_json_body),
    ) -> JSONResponse:
        """Join the inviting organization with the invited role.

        The body must carry the invitation token from the create response,
        and the caller's verified email must be the invited address.
        """
        identity_id = _require_unonboarded(resolution)
        payload = parse_body(InvitationAcceptWrite, body)
        validate_required_fields(payload, ("token",))
        if not resolution.email:
            raise AuthorizationError("A verified email address is required to accept invitations")

        store = get_store(request)
        invitation = await store.get(INVITATIONS.table, invitation_id)
        if invitation["status"] != INVITATION_PENDING or not secrets.compare_digest(
            str(payload["token"]).encode(), str(invitation.get("token") or "").encode()
        ):
            raise NotFoundError("Invitation", invitation_id)

        now = utc_now()
        if invitation["expires_at"] <= now:
            await store.update(
                INVITATIONS.table,
                invitation_id,
                add_update_timestamps({"status": INVITATION_EXPIRED}),
            )
            raise ValidationError("Invitation has expired")

        invited_email = (invitation.get("email") or "").lower()
        if resolution.email.lower() != invited_email:
            raise AuthorizationError("Invitation was issued to a different email address")

        user = await store.insert(
            USERS.table,
            add_create_timestamps(
                {
                    "id": identity_id,
                    "organization_id": invitation["organization_id"],
                    "organization_role": invitation["organization_role"],
                    "is_active": True,
                    "email": resolution.email,
                }
            ),
        )
        accepted = await store.update(
            INVITATIONS.table,
            invitation_id,
            add_update_timestamps({"status": INVITATION_ACCEPTED, "accepted_at": now}),
        )
        logger.info(
            "User %s joined organization %s via invitation %s",
            identity_id,
            invitation["organization_id"],
            invitation_id,
        )
        return create_success_response(
            {"user": camelize_row(user), "invitation": _public_invitation(accepted)}
        )

    return router
