"""User context resolution - verified identity -> organization / role.

Three outcomes per request:
- UNAUTHENTICATED: no verified identity
- UNONBOARDED: verified identity but no users row (client must onboard)
- RESOLVED: UserContext built from the users row

The context is built from the store on every request and passed
explicitly to handlers. Nothing is cached between requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import TYPE_CHECKING, Any

from src.infra.auth.rbac import Permission, check_permission, resolve_role
from src.shared.errors import (
    AuthenticationError,
    AuthorizationError,
    OnboardingRequiredError,
    OrgIsolationError,
    StoreError,
    StoreErrorCode,
)
from src.shared.types import OrganizationRole, UserContext

if TYPE_CHECKING:
    from collections.abc import Mapping

    from src.gateway.middleware.auth import IdentityClaims
    from src.ports.record_store import RecordStorePort

logger = logging.getLogger(__name__)

USERS_TABLE = "users"


@unique
class ResolutionStatus(Enum):
    UNAUTHENTICATED = "unauthenticated"
    UNONBOARDED = "unonboarded"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one request's identity."""

    status: ResolutionStatus
    identity_id: str | None = None
    email: str | None = None
    context: UserContext | None = None

    @property
    def needs_onboarding(self) -> bool:
        return self.status is ResolutionStatus.UNONBOARDED


def context_from_row(row: Mapping[str, Any], *, email: str | None = None) -> UserContext:
    """Build a UserContext from a users row.

    Unknown role strings resolve to the least-privileged role.
    """
    role = resolve_role(row.get("organization_role")) or OrganizationRole.EMPLOYEE
    return UserContext(
        user_id=str(row["id"]),
        organization_id=str(row["organization_id"]),
        organization_role=role,
        is_active=bool(row.get("is_active", True)),
        email=row.get("email") or email,
    )


class UserContextResolver:
    """Resolve IdentityClaims against the users table."""

    def __init__(self, *, store: RecordStorePort) -> None:
        self._store = store

    async def resolve(self, identity: IdentityClaims | None) -> Resolution:
        """Classify the caller. Store failures other than NO_ROWS propagate."""
        if identity is None:
            return Resolution(status=ResolutionStatus.UNAUTHENTICATED)

        try:
            row = await self._store.get(USERS_TABLE, identity.subject)
        except StoreError as exc:
            if exc.store_code != StoreErrorCode.NO_ROWS:
                raise
            logger.info("Identity %s has no user record (onboarding required)", identity.subject)
            return Resolution(
                status=ResolutionStatus.UNONBOARDED,
                identity_id=identity.subject,
                email=identity.email,
            )

        return Resolution(
            status=ResolutionStatus.RESOLVED,
            identity_id=identity.subject,
            email=identity.email,
            context=context_from_row(row, email=identity.email),
        )

    async def require(self, identity: IdentityClaims | None) -> UserContext:
        """Return the caller's UserContext or raise.

        Raises:
            AuthenticationError: No verified identity (401).
            OnboardingRequiredError: No user record yet (403, needsOnboarding).
            AuthorizationError: User account is inactive (403).
        """
        resolution = await self.resolve(identity)
        if resolution.status is ResolutionStatus.UNAUTHENTICATED:
            raise AuthenticationError
        if resolution.status is ResolutionStatus.UNONBOARDED:
            raise OnboardingRequiredError(resolution.identity_id or "")
        assert resolution.context is not None
        _ensure_active(resolution.context)
        return resolution.context


def check_organization_access(context: UserContext, organization_id: str) -> UserContext:
    """Fail closed unless the caller may act on ``organization_id``.

    Inactive users are always denied. Roles holding ADMIN_ACCESS pass
    regardless of which organization is requested; others only for their own.
    """
    _ensure_active(context)
    if context.organization_id != str(organization_id) and not check_permission(
        user_id=context.user_id,
        role=context.organization_role,
        required=Permission.ADMIN_ACCESS,
    ).allowed:
        logger.warning(
            "Organization access denied: user=%s org=%s requested=%s",
            context.user_id,
            context.organization_id,
            organization_id,
        )
        raise OrgIsolationError
    return context


def require_permission(context: UserContext, required: Permission) -> UserContext:
    """Raise AuthorizationError unless the caller's role grants ``required``."""
    result = check_permission(
        user_id=context.user_id,
        role=context.organization_role,
        required=required,
    )
    if not result.allowed:
        raise AuthorizationError(f"Permission denied: {required.value} required")
    return context


def require_admin(context: UserContext) -> UserContext:
    return require_permission(context, Permission.MANAGE_MEMBERS)


def _ensure_active(context: UserContext) -> None:
    if not context.is_active:
        raise AuthorizationError(
            "Access denied: user account is inactive",
            code="USER_INACTIVE",
        )
