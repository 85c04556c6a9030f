"""
Read models returned by the workflow layer and the fallback store.

Both the database-backed path and the in-memory fallback produce these
records, so callers never see ORM objects or raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from leadflow.core.constants import DataSource

T = TypeVar("T")


class TemplateStepRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    template_id: int
    step_order: int
    name: str
    description: str | None = None
    estimated_days: int | None = None
    probability_percent: int | None = None


class TemplateRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    is_active: bool = True
    usage_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    steps: list[TemplateStepRecord] = Field(default_factory=list)


class EntityRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    display_code: str
    title: str
    client_name: str | None = None
    status: str
    template_id: int | None = None
    probability: int = 0
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StepRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_id: int
    name: str
    description: str | None = None
    status: str
    step_order: int
    probability_percent: int | None = None
    due_date: date | None = None
    completed_date: datetime | None = None
    estimated_days: int | None = None
    assigned_to: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StepUpdateRecord(BaseModel):
    """Outcome of a step update: the step plus the owning entity's new probability."""

    step: StepRecord
    entity_id: int
    probability: int


class StepDeletionRecord(BaseModel):
    step_id: int
    entity_id: int
    probability: int


class SyncMismatch(BaseModel):
    """A reordered step that could not be matched to a template step."""

    step_id: int
    step_name: str
    old_order: int
    new_order: int
    reason: str


class ReorderRecord(BaseModel):
    steps: list[StepRecord]
    template_id: int | None = None
    template_synced: bool = False
    mismatches: list[SyncMismatch] = Field(default_factory=list)


class TemplateChangeRecord(BaseModel):
    entity: EntityRecord
    steps: list[StepRecord]
    removed_steps: int = 0


class WeightResyncRecord(BaseModel):
    entity_id: int
    updated_steps: int
    probability: int


class BackfillRecord(BaseModel):
    entities_fixed: int
    steps_created: int
    entity_ids: list[int] = Field(default_factory=list)


class CompletedStepSummary(BaseModel):
    id: int
    name: str
    step_order: int
    probability_percent: int | None = None
    completed_date: datetime | None = None


class ProgressRecord(BaseModel):
    entity_id: int
    probability: int
    total_steps: int
    completed_count: int
    in_progress_count: int
    pending_count: int
    cancelled_count: int
    completed_weight: int
    current_step: StepRecord | None = None
    completed_steps: list[CompletedStepSummary] = Field(default_factory=list)


class StatsRecord(BaseModel):
    kind: str | None = None
    total: int
    by_status: dict[str, int] = Field(default_factory=dict)


class TemplateWeightReport(BaseModel):
    template_id: int
    name: str
    total_weight: int
    step_count: int
    is_balanced: bool


@dataclass
class OperationResult(Generic[T]):
    """
    Envelope returned by every gateway operation.

    `persisted=False` means the change lives only in the in-memory
    fallback and will be lost on restart.
    """

    data: T
    persisted: bool = True
    source: DataSource = DataSource.STORE
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.source == DataSource.FALLBACK

    def to_dict(self) -> dict[str, Any]:
        data = self.data
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        elif isinstance(data, list):
            data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
        return {
            "data": data,
            "persisted": self.persisted,
            "source": self.source.value,
            "warnings": list(self.warnings),
        }
