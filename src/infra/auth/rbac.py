"""RBAC permission matrix: 2 organization roles x 7 permission codes.

- admin: everything inside the organization, including member management
- employee: read and write organization data
- Permission check: the required code must be in the role's set
- Role definitions are immutable at runtime
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique

from src.shared.types import OrganizationRole


@unique
class Permission(Enum):
    """Permission codes for organization members."""

    # Read / write organization data
    READ_DATA = "data:read"
    WRITE_DATA = "data:write"

    # Traceability
    RESPOND_REQUESTS = "requests:respond"

    # Manage
    MANAGE_MEMBERS = "members:manage"
    MANAGE_INVITATIONS = "invitations:manage"
    MANAGE_ORGANIZATION = "organization:manage"

    # Cross-organization administration
    ADMIN_ACCESS = "admin:access"


# Role-Permission matrix is frozen. Changes require a release.
ROLE_PERMISSION_MATRIX: dict[OrganizationRole, frozenset[Permission]] = {
    OrganizationRole.ADMIN: frozenset(Permission),
    OrganizationRole.EMPLOYEE: frozenset(
        {
            Permission.READ_DATA,
            Permission.WRITE_DATA,
            Permission.RESPOND_REQUESTS,
        }
    ),
}


@dataclass(frozen=True)
class PermissionCheckResult:
    """Result of a permission check."""

    allowed: bool
    user_id: str
    required: Permission
    role: OrganizationRole


def get_role_permissions(role: OrganizationRole) -> frozenset[Permission]:
    """Return the permission set for a given role."""
    return ROLE_PERMISSION_MATRIX.get(role, frozenset())


def check_permission(
    *,
    user_id: str,
    role: OrganizationRole,
    required: Permission,
) -> PermissionCheckResult:
    """Check whether a user with a given role has a required permission.

    Args:
        user_id: The user performing the action.
        role: The user's organization role.
        required: The permission needed for the action.

    Returns:
        PermissionCheckResult indicating allowed/denied.
    """
    return PermissionCheckResult(
        allowed=required in get_role_permissions(role),
        user_id=user_id,
        required=required,
        role=role,
    )


def resolve_role(role_str: str | None) -> OrganizationRole | None:
    """Parse a role string into an OrganizationRole, returning None if invalid."""
    if not role_str:
        return None
    try:
        return OrganizationRole(role_str.strip().lower())
    except ValueError:
        return None
