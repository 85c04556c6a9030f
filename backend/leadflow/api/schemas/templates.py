"""Template request schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from leadflow.core.constants import DEFAULT_TEMPLATE_STEP_DAYS


class TemplateStepIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    estimated_days: int = Field(default=DEFAULT_TEMPLATE_STEP_DAYS, ge=0)
    probability_percent: int | None = Field(default=None, ge=0, le=100)


class TemplateCreateRequest(BaseModel):
    """Steps are stored in the given order (1-based). Weights need not total 100."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    steps: list[TemplateStepIn] = Field(default_factory=list)


class TemplateUpdateRequest(BaseModel):
    """Omitted `steps` keeps the current steps; a list replaces them."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None
    steps: list[TemplateStepIn] | None = None
