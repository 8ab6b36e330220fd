"""Identity provider webhooks.

- POST /api/v1/webhooks/identity -> svix-signed identity events

Requests carry no bearer token; the svix signature over the raw body is the
authentication. A ``user.created`` event whose primary email has a pending
invitation creates the user record in the inviting organization with the
invited role, and marks the invitation accepted. Client-writable metadata on
the identity is never read. Every other event is acknowledged and ignored.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse  # noqa: TC002 - needed at runtime by FastAPI
from svix.webhooks import Webhook, WebhookVerificationError

from src.domain.registry import INVITATIONS, USERS
from src.gateway.api.onboarding import INVITATION_ACCEPTED, find_pending_invitations
from src.gateway.deps import get_store
from src.gateway.envelope import create_success_response
from src.infra.auth.rbac import resolve_role
from src.shared.errors import ServiceUnavailableError, StoreError, ValidationError
from src.shared.logging.error_handler import log_structured_error
from src.shared.timestamps import add_create_timestamps, add_update_timestamps, utc_now
from src.shared.types import OrganizationRole

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/v1/webhooks/identity"
SVIX_HEADERS = ("svix-id", "svix-timestamp", "svix-signature")
USER_CREATED = "user.created"


def primary_email(data: dict[str, Any]) -> str | None:
    """Return the primary email address of an identity-provider user object."""
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for entry in addresses:
        if primary_id and entry.get("id") == primary_id:
            return entry.get("email_address")
    if addresses:
        return addresses[0].get("email_address")
    return None


def user_record_from_event(
    data: dict[str, Any],
    invitation: dict[str, Any],
) -> dict[str, Any] | None:
    """Build a users row from ``user.created`` data and the matching invitation.

    Organization and role come from the invitation only. Returns None when
    the event carries no user id.
    """
    if not data.get("id"):
        return None
    role = resolve_role(invitation.get("organization_role")) or OrganizationRole.EMPLOYEE
    record = {
        "id": str(data["id"]),
        "organization_id": str(invitation["organization_id"]),
        "organization_role": role.value,
        "is_active": True,
        "email": primary_email(data),
        "first_name": data.get("first_name"),
        "last_name": data.get("last_name"),
    }
    return add_create_timestamps({k: v for k, v in record.items() if v is not None})


def _parse_event(body: bytes) -> dict[str, Any]:
    try:
        event = json.loads(body)
    except ValueError as exc:
        raise ValidationError("Webhook body must be valid JSON") from exc
    if not isinstance(event, dict):
        raise ValidationError("Webhook body must be a JSON object")
    return event


def create_webhook_router() -> APIRouter:
    """Create webhook router."""
    router = APIRouter(tags=["webhooks"])

    @router.post(WEBHOOK_PATH)
    async def receive_identity_event(request: Request) -> JSONResponse:
        secret = request.app.state.webhook_secret
        if not secret:
            raise ServiceUnavailableError("webhooks", "Webhook secret is not configured")

        headers = {name: request.headers.get(name, "") for name in SVIX_HEADERS}
        missing = [name for name, value in headers.items() if not value]
        if missing:
            raise ValidationError(f"Missing webhook headers: {', '.join(missing)}")

        body = await request.body()
        try:
            Webhook(secret).verify(body, headers)
        except WebhookVerificationError as exc:
            logger.warning("Webhook signature verification failed (svix-id=%s)", headers["svix-id"])
            raise ValidationError("Invalid webhook signature") from exc

        event = _parse_event(body)
        event_type = str(event.get("type", ""))
        data = event.get("data") or {}
        ack = {"received": True, "type": event_type}
        if event_type != USER_CREATED:
            logger.info("Ignoring identity event %s (svix-id=%s)", event_type, headers["svix-id"])
            return create_success_response(ack)

        store = get_store(request)
        invitations = await find_pending_invitations(store, primary_email(data))
        record = user_record_from_event(data, invitations[0]) if invitations else None
        if record is None:
            logger.info("User %s created without a pending invitation", data.get("id"))
            return create_success_response(ack)

        invitation = invitations[0]
        try:
            await store.insert(USERS.table, record)
            await store.update(
                INVITATIONS.table,
                str(invitation["id"]),
                add_update_timestamps({"status": INVITATION_ACCEPTED, "accepted_at": utc_now()}),
            )
        except StoreError as exc:
            log_structured_error(
                logger,
                exc,
                org_id=record["organization_id"],
                context={"event": event_type, "svix_id": headers["svix-id"]},
            )
        else:
            logger.info(
                "User %s created from webhook in org %s as %s (invitation %s)",
                record["id"],
                record["organization_id"],
                record["organization_role"],
                invitation["id"],
            )
        return create_success_response(ack)

    return router
