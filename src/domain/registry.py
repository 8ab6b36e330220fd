"""Entity catalogue: one EntitySchema per persisted entity variant.

Allow-lists, required fields and defaults live here as constants so every
endpoint filters and writes through the same definitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from src.domain.entities import (
    ActivityWrite,
    AssessmentTemplateWrite,
    AssessmentWrite,
    ComponentWrite,
    DocumentWrite,
    InvitationWrite,
    NotificationWrite,
    OrganizationWrite,
    ProductWrite,
    TraceRequestWrite,
    UserWrite,
)
from src.shared.errors import ValidationError
from src.shared.payload import ORGANIZATION_SCOPE_FIELD
from src.shared.timestamps import CREATED_AT, UPDATED_AT

DEFAULT_SORT = f"{CREATED_AT}:desc"


@dataclass(frozen=True)
class EntitySchema:
    """Schema definition for one persisted entity."""

    name: str
    table: str
    write_model: type[BaseModel]
    filterable: tuple[str, ...] = ()
    required: tuple[str, ...] = ()
    defaults: dict[str, Any] = field(default_factory=dict)
    scope_field: str | None = ORGANIZATION_SCOPE_FIELD
    creator_field: str | None = None  # set from the caller's user id on create
    default_sort: str = DEFAULT_SORT

    @property
    def writable(self) -> frozenset[str]:
        """Columns a client payload may set."""
        return frozenset(self.write_model.model_fields)

    @property
    def query_fields(self) -> tuple[str, ...]:
        """Filter allow-list plus the timestamp columns (ranges and sorting)."""
        return (*self.filterable, CREATED_AT, UPDATED_AT)

    def parse(self, body: Any) -> dict[str, Any]:
        return parse_body(self.write_model, body)


def parse_body(model_type: type[BaseModel], body: Any) -> dict[str, Any]:
    """Validate a request body against a write model.

    Returns only the fields the client actually sent, keyed by column
    name. Pydantic failures become a 400 ValidationError.
    """
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        model = model_type.model_validate(body)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid {loc or 'payload'}: {first['msg']}", field=loc) from exc
    return model.model_dump(exclude_unset=True)


ORGANIZATIONS = EntitySchema(
    name="organization",
    table="organizations",
    write_model=OrganizationWrite,
    required=("name",),
    scope_field=None,
)

USERS = EntitySchema(
    name="user",
    table="users",
    write_model=UserWrite,
    filterable=("organization_role", "is_active"),
    default_sort=f"{CREATED_AT}:asc",
)

INVITATIONS = EntitySchema(
    name="invitation",
    table="organization_invites",
    write_model=InvitationWrite,
    filterable=("status", "email", "organization_role"),
    required=("email", "organization_role"),
    creator_field="invited_by",
)

PRODUCTS = EntitySchema(
    name="product",
    table="products",
    write_model=ProductWrite,
    filterable=("name", "sku", "category", "type", "status"),
    required=("name", "type"),
    defaults={
        "data_completeness": 0,
        "missing_data_fields": [],
        "metadata": {},
        "status": "active",
        "quantity": 1,
        "unit": "pcs",
    },
)

COMPONENTS = EntitySchema(
    name="component",
    table="components",
    write_model=ComponentWrite,
    filterable=("product_id", "parent_id", "type", "status"),
    required=("name", "product_id"),
    defaults={"metadata": {}, "status": "active", "quantity": 1, "unit": "pcs"},
)

ASSESSMENT_TEMPLATES = EntitySchema(
    name="assessment_template",
    table="assessment_templates",
    write_model=AssessmentTemplateWrite,
    filterable=("title", "recommended"),
    required=("title",),
    defaults={"recommended": False, "tags": [], "definition": {}},
    scope_field="created_by_organization_id",
)

ASSESSMENTS = EntitySchema(
    name="assessment",
    table="assessments",
    write_model=AssessmentWrite,
    filterable=("status", "priority", "template_id", "topic"),
    required=("title", "template_id"),
    defaults={"status": "draft", "priority": "medium", "product_ids": [], "data_completeness": 0},
    creator_field="created_by",
)

TRACE_REQUESTS = EntitySchema(
    name="trace_request",
    table="trace_requests",
    write_model=TraceRequestWrite,
    filterable=("status", "priority", "target_organization_id", "requesting_organization_id"),
    required=("target_organization_id",),
    defaults={"status": "pending", "priority": "medium", "product_ids": [], "cascade_settings": {}},
    scope_field="requesting_organization_id",
    creator_field="created_by",
)

DOCUMENTS = EntitySchema(
    name="document",
    table="documents",
    write_model=DocumentWrite,
    filterable=("upload_status", "processing_status", "mime_type"),
    required=("original_filename", "file_size"),
    defaults={
        "upload_status": "uploaded",
        "processing_status": "pending",
        "extracted_data": {},
        "metadata": {},
    },
    creator_field="uploaded_by",
)

ACTIVITIES = EntitySchema(
    name="activity",
    table="integration_activities",
    write_model=ActivityWrite,
    filterable=("title", "subtitle", "status"),
    required=("title",),
    defaults={"status": "processing"},
)

NOTIFICATIONS = EntitySchema(
    name="notification",
    table="notifications",
    write_model=NotificationWrite,
    filterable=("type", "is_read", "priority"),
    required=("type", "title", "message"),
    defaults={"is_read": False, "priority": "medium"},
)

# Org-scoped entities served by the generic resource router, keyed by URL segment.
RESOURCE_SCHEMAS: dict[str, EntitySchema] = {
    "products": PRODUCTS,
    "components": COMPONENTS,
    "assessment-templates": ASSESSMENT_TEMPLATES,
    "assessments": ASSESSMENTS,
    "documents": DOCUMENTS,
    "activities": ACTIVITIES,
    "notifications": NOTIFICATIONS,
}

_ALL_SCHEMAS: tuple[EntitySchema, ...] = (
    ORGANIZATIONS,
    USERS,
    INVITATIONS,
    TRACE_REQUESTS,
    *RESOURCE_SCHEMAS.values(),
)


def list_schemas() -> list[EntitySchema]:
    return list(_ALL_SCHEMAS)


__all__ = [
    "ACTIVITIES",
    "ASSESSMENTS",
    "ASSESSMENT_TEMPLATES",
    "COMPONENTS",
    "DOCUMENTS",
    "INVITATIONS",
    "NOTIFICATIONS",
    "ORGANIZATIONS",
    "PRODUCTS",
    "RESOURCE_SCHEMAS",
    "TRACE_REQUESTS",
    "USERS",
    "EntitySchema",
    "list_schemas",
    "parse_body",
]
