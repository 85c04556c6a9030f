"""Step request schemas."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class StepCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    step_order: int | None = None
    probability_percent: int = Field(default=0, ge=0, le=100)
    due_date: date | None = None
    estimated_days: int | None = Field(default=None, ge=0)
    assigned_to: str | None = Field(default=None, max_length=255)


class StepUpdateRequest(BaseModel):
    """
    Status change and/or field edits for one step.

    `status` is a plain string so unknown values reach the transition
    check and come back as 409, like any other rejected transition.
    """

    status: str | None = None
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    due_date: date | None = None
    completed_date: datetime | None = None
    estimated_days: int | None = Field(default=None, ge=0)
    assigned_to: str | None = Field(default=None, max_length=255)


class ReorderItem(BaseModel):
    id: int
    order: int


class ReorderRequest(BaseModel):
    steps: list[ReorderItem] = Field(..., min_length=1)
