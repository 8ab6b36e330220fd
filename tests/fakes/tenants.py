"""Tenant seeding helpers for API tests.

Writes organizations and users straight into a record store so tests can
start from a resolved caller without going through onboarding.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from src.gateway.middleware.auth import encode_token

if TYPE_CHECKING:
    from src.ports.record_store import RecordStorePort

JWT_SECRET = "test-secret-for-tracehub-unit-tests"  # noqa: S105

# svix secrets are "whsec_" + base64 key bytes.
WEBHOOK_SECRET = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"  # noqa: S105


def bearer(subject: str, *, email: str | None = None, secret: str = JWT_SECRET) -> dict[str, str]:
    """Authorization header for a token issued to ``subject``."""
    token = encode_token(subject=subject, secret=secret, email=email)
    return {"Authorization": f"Bearer {token}"}


async def seed_organization(store: RecordStorePort, name: str = "Acme Corp") -> dict[str, Any]:
    return await store.insert("organizations", {"name": name, "email": "ops@acme.test"})


async def seed_user(
    store: RecordStorePort,
    organization_id: str,
    *,
    user_id: str,
    role: str = "employee",
    is_active: bool = True,
    email: str | None = None,
) -> dict[str, Any]:
    return await store.insert(
        "users",
        {
            "id": user_id,
            "organization_id": organization_id,
            "organization_role": role,
            "is_active": is_active,
            "email": email or f"{user_id}@example.test",
        },
    )
