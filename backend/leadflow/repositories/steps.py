"""
Step repository — data access for pipeline_steps and step_comments.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.constants import StepStatus
from leadflow.db.models.step import PipelineStep
from leadflow.db.models.step_comment import StepComment


async def list_steps(db: AsyncSession, entity_id: int) -> list[PipelineStep]:
    """All steps of an entity in display order."""
    stmt = select(PipelineStep).where(PipelineStep.entity_id == entity_id).order_by(PipelineStep.step_order)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_step(db: AsyncSession, step_id: int, *, for_update: bool = False) -> PipelineStep | None:
    stmt = select(PipelineStep).where(PipelineStep.id == step_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def add_steps(
    db: AsyncSession,
    entity_id: int,
    specs: Iterable[dict[str, Any]],
) -> list[PipelineStep]:
    """Bulk-insert step instances for one entity."""
    rows = [
        PipelineStep(
            entity_id=entity_id,
            name=spec["name"],
            description=spec.get("description"),
            status=spec.get("status", StepStatus.PENDING.value),
            step_order=spec["step_order"],
            probability_percent=spec.get("probability_percent", 0),
            due_date=spec.get("due_date"),
            estimated_days=spec.get("estimated_days"),
            assigned_to=spec.get("assigned_to"),
        )
        for spec in specs
    ]
    db.add_all(rows)
    await db.flush()
    return rows


async def count_steps(db: AsyncSession, entity_id: int) -> int:
    stmt = select(func.count(PipelineStep.id)).where(PipelineStep.entity_id == entity_id)
    result = await db.execute(stmt)
    return int(result.scalar_one())


async def next_step_order(db: AsyncSession, entity_id: int) -> int:
    stmt = select(func.coalesce(func.max(PipelineStep.step_order), 0)).where(PipelineStep.entity_id == entity_id)
    result = await db.execute(stmt)
    return int(result.scalar_one()) + 1


async def completed_weights(db: AsyncSession, entity_id: int) -> list[int | None]:
    """Weights of the entity's completed steps (nulls kept)."""
    stmt = select(PipelineStep.probability_percent).where(
        PipelineStep.entity_id == entity_id,
        PipelineStep.status == StepStatus.COMPLETED.value,
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def delete_step(db: AsyncSession, step_id: int) -> bool:
    """Delete one step; comments cascade in the database."""
    result = await db.execute(delete(PipelineStep).where(PipelineStep.id == step_id))
    await db.flush()
    return result.rowcount > 0


async def delete_entity_steps(db: AsyncSession, entity_id: int) -> int:
    """Delete every step of an entity. Returns the number of rows removed."""
    result = await db.execute(delete(PipelineStep).where(PipelineStep.entity_id == entity_id))
    await db.flush()
    return result.rowcount


# ─── Comments ─────────────────────────────────
async def add_comment(db: AsyncSession, step_id: int, *, author: str, message: str) -> StepComment:
    comment = StepComment(step_id=step_id, author=author, message=message)
    db.add(comment)
    await db.flush()
    return comment


async def list_comments(db: AsyncSession, step_id: int) -> list[StepComment]:
    stmt = select(StepComment).where(StepComment.step_id == step_id).order_by(StepComment.created_at, StepComment.id)
    result = await db.execute(stmt)
    return list(result.scalars().all())
