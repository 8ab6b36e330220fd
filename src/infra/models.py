"""SQLAlchemy ORM models for the Traceability Hub.

Maps to migration DDL in migrations/versions/:
  001_create_tenant_tables.py        -> Organization, User, OrganizationInvite,
                                        Notification, IntegrationActivity
  002_create_traceability_tables.py  -> Product, Component, AssessmentTemplate,
                                        Assessment, TraceRequest, Document

Both record stores read table definitions from ``Base.metadata``: the SQL
store builds Core statements from them, the in-memory store enforces the
same primary keys, unique constraints, foreign keys and NOT NULL columns.

Primary keys are strings: UUID text for every table except ``users``,
whose id is the identity provider's user id.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 -- SQLAlchemy resolves Mapped[] annotations at runtime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

_UUID = postgresql.UUID(as_uuid=False)
_NOW = sa.text("now()")
_GEN_UUID = sa.text("gen_random_uuid()")
_EMPTY_JSON = sa.text("'{}'::jsonb")
_EMPTY_ARRAY = sa.text("'{}'")


class Base(DeclarativeBase):
    """Declarative base for all Traceability Hub ORM models."""


class _Timestamped:
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=_NOW,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=_NOW,
    )


def _org_fk(*, nullable: bool = False, ondelete: str = "CASCADE") -> Any:
    return mapped_column(
        _UUID,
        sa.ForeignKey("organizations.id", ondelete=ondelete),
        nullable=nullable,
    )


class Organization(_Timestamped, Base):
    """Tenant."""

    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(sa.String(320), nullable=True)
    address: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)


class User(_Timestamped, Base):
    """Onboarded user; exactly one organization per user."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        sa.String(255),
        primary_key=True,
        comment="identity provider user id",
    )
    organization_id: Mapped[str] = _org_fk()
    organization_role: Mapped[str] = mapped_column(
        sa.String(32),
        nullable=False,
        server_default="employee",
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean(),
        nullable=False,
        server_default=sa.text("true"),
    )
    email: Mapped[str | None] = mapped_column(sa.String(320), nullable=True)
    first_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    __table_args__ = (sa.Index("ix_users_organization_id", "organization_id"),)


class OrganizationInvite(_Timestamped, Base):
    __tablename__ = "organization_invites"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    organization_id: Mapped[str] = _org_fk()
    email: Mapped[str] = mapped_column(sa.String(320), nullable=False)
    organization_role: Mapped[str] = mapped_column(
        sa.String(32),
        nullable=False,
        server_default="employee",
    )
    invited_by: Mapped[str | None] = mapped_column(
        sa.String(255),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="pending")
    token: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        sa.Index("ix_organization_invites_org_status", "organization_id", "status"),
        sa.Index("ix_organization_invites_email", "email"),
    )


class Notification(_Timestamped, Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    organization_id: Mapped[str] = _org_fk()
    type: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    message: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    is_read: Mapped[bool] = mapped_column(
        sa.Boolean(),
        nullable=False,
        server_default=sa.text("false"),
    )
    priority: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="medium")
    action_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    __table_args__ = (sa.Index("ix_notifications_org_read", "organization_id", "is_read"),)


class IntegrationActivity(_Timestamped, Base):
    __tablename__ = "integration_activities"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    organization_id: Mapped[str] = _org_fk()
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    subtitle: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="processing")

    __table_args__ = (sa.Index("ix_integration_activities_org", "organization_id"),)


class Product(_Timestamped, Base):
    """Product or sub-assembly in an organization's supply chain."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    organization_id: Mapped[str] = _org_fk()
    parent_id: Mapped[str | None] = mapped_column(
        _UUID,
        sa.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    sku: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    category: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    type: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    quantity: Mapped[float] = mapped_column(sa.Float(), nullable=False, server_default="1")
    unit: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="pcs")
    supplier_organization_id: Mapped[str | None] = _org_fk(nullable=True, ondelete="SET NULL")
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        postgresql.JSONB,
        nullable=False,
        server_default=_EMPTY_JSON,
    )
    data_completeness: Mapped[int] = mapped_column(
        sa.Integer(),
        nullable=False,
        server_default="0",
    )
    missing_data_fields: Mapped[list[str]] = mapped_column(
        postgresql.ARRAY(sa.Text()),
        nullable=False,
        server_default=_EMPTY_ARRAY,
    )
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="active")

    __table_args__ = (
        sa.Index("ix_products_organization_id", "organization_id"),
        sa.Index("ix_products_parent_id", "parent_id"),
    )


class Component(_Timestamped, Base):
    __tablename__ = "components"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    organization_id: Mapped[str] = _org_fk()
    product_id: Mapped[str] = mapped_column(
        _UUID,
        sa.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_id: Mapped[str | None] = mapped_column(
        _UUID,
        sa.ForeignKey("components.id", ondelete="CASCADE"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    type: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    quantity: Mapped[float] = mapped_column(sa.Float(), nullable=False, server_default="1")
    unit: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="pcs")
    supplier_organization_id: Mapped[str | None] = _org_fk(nullable=True, ondelete="SET NULL")
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        postgresql.JSONB,
        nullable=False,
        server_default=_EMPTY_JSON,
    )
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="active")

    __table_args__ = (sa.Index("ix_components_product_id", "product_id"),)


class AssessmentTemplate(_Timestamped, Base):
    __tablename__ = "assessment_templates"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    created_by_organization_id: Mapped[str] = _org_fk()
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    icon: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    recommended: Mapped[bool] = mapped_column(
        sa.Boolean(),
        nullable=False,
        server_default=sa.text("false"),
    )
    last_used: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    tags: Mapped[list[str]] = mapped_column(
        postgresql.ARRAY(sa.Text()),
        nullable=False,
        server_default=_EMPTY_ARRAY,
    )
    definition: Mapped[dict[str, Any]] = mapped_column(
        postgresql.JSONB,
        nullable=False,
        server_default=_EMPTY_JSON,
        comment="question schema rendered by the assessment form",
    )


class Assessment(_Timestamped, Base):
    __tablename__ = "assessments"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    template_id: Mapped[str] = mapped_column(
        _UUID,
        sa.ForeignKey("assessment_templates.id", ondelete="RESTRICT"),
        nullable=False,
    )
    organization_id: Mapped[str] = _org_fk()
    requesting_organization_id: Mapped[str | None] = _org_fk(nullable=True, ondelete="SET NULL")
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    topic: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="draft")
    priority: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="medium")
    product_ids: Mapped[list[str]] = mapped_column(
        postgresql.ARRAY(sa.Text()),
        nullable=False,
        server_default=_EMPTY_ARRAY,
    )
    created_by: Mapped[str | None] = mapped_column(
        sa.String(255),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    due_date: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=True,
    )
    data_completeness: Mapped[int] = mapped_column(
        sa.Integer(),
        nullable=False,
        server_default="0",
    )

    __table_args__ = (sa.Index("ix_assessments_organization_id", "organization_id"),)


class TraceRequest(_Timestamped, Base):
    """Data request from a requesting organization to a supplier (target)."""

    __tablename__ = "trace_requests"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    requesting_organization_id: Mapped[str] = _org_fk()
    target_organization_id: Mapped[str] = _org_fk()
    assessment_id: Mapped[str | None] = mapped_column(
        _UUID,
        sa.ForeignKey("assessments.id", ondelete="SET NULL"),
        nullable=True,
    )
    product_ids: Mapped[list[str]] = mapped_column(
        postgresql.ARRAY(sa.Text()),
        nullable=False,
        server_default=_EMPTY_ARRAY,
    )
    parent_request_id: Mapped[str | None] = mapped_column(
        _UUID,
        sa.ForeignKey("trace_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="pending")
    priority: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default="medium")
    due_date: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    cascade_settings: Mapped[dict[str, Any]] = mapped_column(
        postgresql.JSONB,
        nullable=False,
        server_default=_EMPTY_JSON,
    )
    created_by: Mapped[str | None] = mapped_column(
        sa.String(255),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        sa.Index("ix_trace_requests_requesting_org", "requesting_organization_id"),
        sa.Index("ix_trace_requests_target_org", "target_organization_id"),
    )


class Document(_Timestamped, Base):
    """Uploaded document metadata (file bytes are stored elsewhere)."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(_UUID, primary_key=True, server_default=_GEN_UUID)
    organization_id: Mapped[str] = _org_fk()
    uploaded_by: Mapped[str | None] = mapped_column(
        sa.String(255),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    original_filename: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    stored_filename: Mapped[str | None] = mapped_column(sa.String(512), nullable=True)
    file_path: Mapped[str | None] = mapped_column(sa.String(1024), nullable=True)
    file_size: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    upload_status: Mapped[str] = mapped_column(
        sa.String(32),
        nullable=False,
        server_default="uploaded",
    )
    processing_status: Mapped[str] = mapped_column(
        sa.String(32),
        nullable=False,
        server_default="pending",
    )
    extracted_data: Mapped[dict[str, Any]] = mapped_column(
        postgresql.JSONB,
        nullable=False,
        server_default=_EMPTY_JSON,
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        postgresql.JSONB,
        nullable=False,
        server_default=_EMPTY_JSON,
    )

    __table_args__ = (sa.Index("ix_documents_organization_id", "organization_id"),)
