"""Create organizations, users, organization_invites, notifications and
integration_activities tables.

Revision ID: 001_tenant
Revises: None
Create Date: 2026-10-19

Rollback: reverse-drop integration_activities, notifications,
organization_invites, users, organizations
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_tenant"
down_revision = None
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=False)
_NOW = sa.text("now()")
_GEN_UUID = sa.text("gen_random_uuid()")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
    ]


def _org_fk(name: str = "organization_id") -> sa.Column:
    return sa.Column(
        name,
        _UUID,
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # --- organizations ---
    op.create_table(
        "organizations",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        *_timestamps(),
    )

    # --- users (id is the identity provider's user id) ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True, comment="identity provider user id"),
        _org_fk(),
        sa.Column(
            "organization_role",
            sa.String(32),
            nullable=False,
            server_default="employee",
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])

    # --- organization_invites ---
    op.create_table(
        "organization_invites",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _org_fk(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column(
            "organization_role",
            sa.String(32),
            nullable=False,
            server_default="employee",
        ),
        sa.Column(
            "invited_by",
            sa.String(255),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_organization_invites_org_status",
        "organization_invites",
        ["organization_id", "status"],
    )
    op.create_index("ix_organization_invites_email", "organization_invites", ["email"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _org_fk(),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "is_read",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("action_url", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_notifications_org_read",
        "notifications",
        ["organization_id", "is_read"],
    )

    # --- integration_activities ---
    op.create_table(
        "integration_activities",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _org_fk(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("subtitle", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="processing"),
        *_timestamps(),
    )
    op.create_index(
        "ix_integration_activities_org",
        "integration_activities",
        ["organization_id"],
    )


def downgrade() -> None:
    op.drop_table("integration_activities")
    op.drop_table("notifications")
    op.drop_table("organization_invites")
    op.drop_table("users")
    op.drop_table("organizations")
