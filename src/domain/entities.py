"""Write models for every persisted entity variant.

Each model is the explicit field schema of one entity. Request bodies are
validated against it at the boundary; camelCase and snake_case keys are both
accepted, unknown keys are ignored, and every field is optional so the same
model serves create and partial update. Required fields are enforced per
operation by the entity registry.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)

from src.shared.casing import to_camel

MAX_FILE_SIZE = 50 * 1024 * 1024
ALLOWED_MIME_TYPES = frozenset(
    {
        "text/plain",
        "text/csv",
        "application/json",
        "application/pdf",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "image/png",
        "image/jpeg",
    }
)

ProductType = Literal["raw_material", "sub_assembly", "component", "final_product"]
Priority = Literal["low", "medium", "high", "urgent"]

# References to UUID-keyed rows; validated here and stored as canonical text.
RecordId = Annotated[UUID, PlainSerializer(str, return_type=str)]


class EntityWrite(BaseModel):
    """Base for entity write models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _utc_datetimes(self) -> EntityWrite:
        # Naive datetimes are read as UTC so stored values compare cleanly.
        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, datetime) and value.tzinfo is None:
                setattr(self, name, value.replace(tzinfo=UTC))
        return self


class OrganizationWrite(EntityWrite):
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    address: str | None = None


class ProductWrite(EntityWrite):
    name: str | None = Field(default=None, max_length=255)
    sku: str | None = Field(default=None, max_length=128)
    description: str | None = None
    category: str | None = None
    type: ProductType | None = None
    quantity: float | None = Field(default=None, ge=0)
    unit: str | None = None
    metadata: dict[str, Any] | None = None
    data_completeness: int | None = Field(default=None, ge=0, le=100)
    missing_data_fields: list[str] | None = None
    status: str | None = None
    parent_id: RecordId | None = None
    supplier_organization_id: RecordId | None = None


class ComponentWrite(EntityWrite):
    product_id: RecordId | None = None
    parent_id: RecordId | None = None
    name: str | None = Field(default=None, max_length=255)
    type: ProductType | None = None
    description: str | None = None
    quantity: float | None = Field(default=None, ge=0)
    unit: str | None = None
    supplier_organization_id: RecordId | None = None
    metadata: dict[str, Any] | None = None
    status: str | None = None


class AssessmentTemplateWrite(EntityWrite):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    icon: str | None = None
    recommended: bool | None = None
    tags: list[str] | None = None
    definition: dict[str, Any] | None = None


class AssessmentWrite(EntityWrite):
    template_id: RecordId | None = None
    requesting_organization_id: RecordId | None = None
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    topic: str | None = None
    status: Literal["draft", "in_progress", "complete"] | None = None
    priority: Priority | None = None
    product_ids: list[str] | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    data_completeness: int | None = Field(default=None, ge=0, le=100)


class TraceRequestWrite(EntityWrite):
    target_organization_id: RecordId | None = None
    assessment_id: RecordId | None = None
    product_ids: list[str] | None = None
    parent_request_id: RecordId | None = None
    status: Literal["pending", "in_progress", "completed", "rejected", "overdue"] | None = None
    priority: Priority | None = None
    due_date: datetime | None = None
    message: str | None = None
    cascade_settings: dict[str, Any] | None = None


class DocumentWrite(EntityWrite):
    original_filename: str | None = None
    stored_filename: str | None = None
    file_path: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    description: str | None = None
    upload_status: Literal["uploaded", "processing", "processed", "failed"] | None = None
    processing_status: Literal["pending", "processing", "completed", "failed"] | None = None
    extracted_data: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("original_filename")
    @classmethod
    def validate_filename(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v.strip():
            msg = "Filename cannot be empty"
            raise ValueError(msg)
        if ".." in v or "/" in v or "\\" in v:
            msg = "Invalid filename"
            raise ValueError(msg)
        return v.strip()

    @field_validator("file_size")
    @classmethod
    def validate_file_size(cls, v: int | None) -> int | None:
        if v is None:
            return v
        if v <= 0:
            msg = "File size must be positive"
            raise ValueError(msg)
        if v > MAX_FILE_SIZE:
            msg = f"File size exceeds limit: {v} > {MAX_FILE_SIZE}"
            raise ValueError(msg)
        return v

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str | None) -> str | None:
        if v is not None and v not in ALLOWED_MIME_TYPES:
            msg = f"Content type not allowed: {v}"
            raise ValueError(msg)
        return v


class ActivityWrite(EntityWrite):
    title: str | None = Field(default=None, max_length=255)
    subtitle: str | None = None
    status: Literal["success", "processing", "completed", "failed"] | None = None


class NotificationWrite(EntityWrite):
    type: str | None = Field(default=None, max_length=64)
    title: str | None = Field(default=None, max_length=255)
    message: str | None = None
    is_read: bool | None = None
    priority: Literal["low", "medium", "high"] | None = None
    action_url: str | None = None


class InvitationWrite(EntityWrite):
    email: EmailStr | None = None
    organization_role: Literal["admin", "employee"] | None = None


class InvitationAcceptWrite(EntityWrite):
    token: str | None = Field(default=None, max_length=128)


class OnboardingWrite(EntityWrite):
    """Self-service onboarding: create an organization and become its admin."""

    organization_name: str | None = Field(default=None, max_length=255)
    organization_email: EmailStr | None = None
    organization_address: str | None = None
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)


class UserWrite(EntityWrite):
    """Fields an admin may change on a member's user record."""

    organization_role: Literal["admin", "employee"] | None = None
    is_active: bool | None = None


__all__ = [
    "ALLOWED_MIME_TYPES",
    "MAX_FILE_SIZE",
    "ActivityWrite",
    "AssessmentTemplateWrite",
    "AssessmentWrite",
    "ComponentWrite",
    "DocumentWrite",
    "EntityWrite",
    "InvitationAcceptWrite",
    "InvitationWrite",
    "NotificationWrite",
    "OnboardingWrite",
    "OrganizationWrite",
    "ProductWrite",
    "TraceRequestWrite",
    "UserWrite",
]
