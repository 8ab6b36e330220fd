"""Create products, components, assessment_templates, assessments,
trace_requests and documents tables.

Revision ID: 002_traceability
Revises: 001_tenant
Create Date: 2026-10-19

Rollback: reverse-drop documents, trace_requests, assessments,
assessment_templates, components, products
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "002_traceability"
down_revision = "001_tenant"
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=False)
_NOW = sa.text("now()")
_GEN_UUID = sa.text("gen_random_uuid()")
_EMPTY_JSON = sa.text("'{}'::jsonb")
_EMPTY_ARRAY = sa.text("'{}'")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
    ]


def _fk(
    name: str,
    target: str,
    *,
    nullable: bool,
    ondelete: str,
    type_: sa.types.TypeEngine = _UUID,
) -> sa.Column:
    return sa.Column(name, type_, sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _jsonb(name: str) -> sa.Column:
    return sa.Column(name, postgresql.JSONB, nullable=False, server_default=_EMPTY_JSON)


def _text_array(name: str) -> sa.Column:
    return sa.Column(name, postgresql.ARRAY(sa.Text()), nullable=False, server_default=_EMPTY_ARRAY)


def upgrade() -> None:
    # --- products ---
    op.create_table(
        "products",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _fk("organization_id", "organizations.id", nullable=False, ondelete="CASCADE"),
        _fk("parent_id", "products.id", nullable=True, ondelete="SET NULL"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(128), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
        sa.Column("unit", sa.String(32), nullable=False, server_default="pcs"),
        _fk("supplier_organization_id", "organizations.id", nullable=True, ondelete="SET NULL"),
        _jsonb("metadata"),
        sa.Column("data_completeness", sa.Integer(), nullable=False, server_default="0"),
        _text_array("missing_data_fields"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_products_organization_id", "products", ["organization_id"])
    op.create_index("ix_products_parent_id", "products", ["parent_id"])

    # --- components ---
    op.create_table(
        "components",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _fk("organization_id", "organizations.id", nullable=False, ondelete="CASCADE"),
        _fk("product_id", "products.id", nullable=False, ondelete="CASCADE"),
        _fk("parent_id", "components.id", nullable=True, ondelete="CASCADE"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(32), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
        sa.Column("unit", sa.String(32), nullable=False, server_default="pcs"),
        _fk("supplier_organization_id", "organizations.id", nullable=True, ondelete="SET NULL"),
        _jsonb("metadata"),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_components_product_id", "components", ["product_id"])

    # --- assessment_templates ---
    op.create_table(
        "assessment_templates",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _fk("created_by_organization_id", "organizations.id", nullable=False, ondelete="CASCADE"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(128), nullable=True),
        sa.Column(
            "recommended",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("last_used", sa.DateTime(timezone=True), nullable=True),
        _text_array("tags"),
        sa.Column(
            "definition",
            postgresql.JSONB,
            nullable=False,
            server_default=_EMPTY_JSON,
            comment="question schema rendered by the assessment form",
        ),
        *_timestamps(),
    )

    # --- assessments ---
    op.create_table(
        "assessments",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _fk("template_id", "assessment_templates.id", nullable=False, ondelete="RESTRICT"),
        _fk("organization_id", "organizations.id", nullable=False, ondelete="CASCADE"),
        _fk("requesting_organization_id", "organizations.id", nullable=True, ondelete="SET NULL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("topic", sa.String(128), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        _text_array("product_ids"),
        _fk("created_by", "users.id", nullable=True, ondelete="SET NULL", type_=sa.String(255)),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("data_completeness", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_assessments_organization_id", "assessments", ["organization_id"])

    # --- trace_requests ---
    op.create_table(
        "trace_requests",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _fk("requesting_organization_id", "organizations.id", nullable=False, ondelete="CASCADE"),
        _fk("target_organization_id", "organizations.id", nullable=False, ondelete="CASCADE"),
        _fk("assessment_id", "assessments.id", nullable=True, ondelete="SET NULL"),
        _text_array("product_ids"),
        _fk("parent_request_id", "trace_requests.id", nullable=True, ondelete="SET NULL"),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(16), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        _jsonb("cascade_settings"),
        _fk("created_by", "users.id", nullable=True, ondelete="SET NULL", type_=sa.String(255)),
        *_timestamps(),
    )
    op.create_index(
        "ix_trace_requests_requesting_org",
        "trace_requests",
        ["requesting_organization_id"],
    )
    op.create_index("ix_trace_requests_target_org", "trace_requests", ["target_organization_id"])

    # --- documents ---
    op.create_table(
        "documents",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        _fk("organization_id", "organizations.id", nullable=False, ondelete="CASCADE"),
        _fk("uploaded_by", "users.id", nullable=True, ondelete="SET NULL", type_=sa.String(255)),
        sa.Column("original_filename", sa.String(512), nullable=False),
        sa.Column("stored_filename", sa.String(512), nullable=True),
        sa.Column("file_path", sa.String(1024), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("upload_status", sa.String(32), nullable=False, server_default="uploaded"),
        sa.Column("processing_status", sa.String(32), nullable=False, server_default="pending"),
        _jsonb("extracted_data"),
        _jsonb("metadata"),
        *_timestamps(),
    )
    op.create_index("ix_documents_organization_id", "documents", ["organization_id"])


def downgrade() -> None:
    op.drop_table("documents")
    op.drop_table("trace_requests")
    op.drop_table("assessments")
    op.drop_table("assessment_templates")
    op.drop_table("components")
    op.drop_table("products")
