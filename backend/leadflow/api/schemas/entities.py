"""Lead / VC request schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from leadflow.core.constants import EntityStatus


class EntityCreateRequest(BaseModel):
    """Payload for creating a Lead or VC; steps are instantiated from `template_id`."""

    title: str = Field(..., min_length=1, max_length=255)
    client_name: str | None = Field(default=None, max_length=255)
    template_id: int | None = None
    status: EntityStatus = EntityStatus.IN_PROGRESS
    notes: str | None = None


class EntityUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    client_name: str | None = Field(default=None, max_length=255)
    status: EntityStatus | None = None
    notes: str | None = None


class TemplateChangeRequest(BaseModel):
    """Switch an entity to another template (null = default steps)."""

    template_id: int | None = None
