"""Progress dashboard and entity statistics."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.constants import StepStatus
from leadflow.core.errors import NotFoundError
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository
from leadflow.workflow.probability import probability_from_steps
from leadflow.workflow.records import CompletedStepSummary, ProgressRecord, StatsRecord, StepRecord


def build_progress(entity_id: int, steps: Iterable[object]) -> ProgressRecord:
    """
    Summarize one entity's steps.

    The current step is the first in-progress step, else the first pending one.
    """
    ordered = sorted((StepRecord.model_validate(s) for s in steps), key=lambda s: s.step_order)

    def of(status: str) -> list[StepRecord]:
        return [s for s in ordered if s.status == status]

    completed = of(StepStatus.COMPLETED)
    in_progress = of(StepStatus.IN_PROGRESS)
    pending = of(StepStatus.PENDING)
    current = (in_progress or pending or [None])[0]

    return ProgressRecord(
        entity_id=entity_id,
        probability=probability_from_steps(ordered),
        total_steps=len(ordered),
        completed_count=len(completed),
        in_progress_count=len(in_progress),
        pending_count=len(pending),
        cancelled_count=len(of(StepStatus.CANCELLED)),
        completed_weight=sum(s.probability_percent or 0 for s in completed),
        current_step=current,
        completed_steps=[
            CompletedStepSummary(
                id=s.id,
                name=s.name,
                step_order=s.step_order,
                probability_percent=s.probability_percent,
                completed_date=s.completed_date,
            )
            for s in completed
        ],
    )


def build_stats(by_status: dict[str, int], kind: str | None = None) -> StatsRecord:
    return StatsRecord(kind=kind, total=sum(by_status.values()), by_status=dict(by_status))


async def progress_summary(db: AsyncSession, entity_id: int) -> ProgressRecord:
    entity = await entity_repository.get_entity(db, entity_id)
    if entity is None:
        raise NotFoundError("Entity not found", entity_id=entity_id)
    steps = await step_repository.list_steps(db, entity_id)
    return build_progress(entity_id, steps)


async def entity_stats(db: AsyncSession, *, kind: str | None = None) -> StatsRecord:
    return build_stats(await entity_repository.count_by_status(db, kind=kind), kind=kind)
