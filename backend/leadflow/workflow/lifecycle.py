"""
Step lifecycle — status transitions, field edits, manual create/delete.

Every mutation that can change which steps are completed (or their
weights) recomputes the owning entity's probability in the same
transaction.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.constants import STEP_TRANSITIONS, TERMINAL_STEP_STATUSES, StepStatus
from leadflow.core.errors import InvalidReorderError, InvalidTransitionError, NotFoundError
from leadflow.core.logging import get_logger
from leadflow.db.models.base import utcnow
from leadflow.db.models.step import PipelineStep
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository
from leadflow.workflow.probability import recompute_probability

logger = get_logger(__name__)

# Fields a caller may edit alongside (or instead of) a status change
EDITABLE_STEP_FIELDS = frozenset(
    {"name", "description", "due_date", "assigned_to", "estimated_days", "completed_date"}
)


def check_transition(current: str, new: str) -> None:
    """Raise InvalidTransitionError unless current → new is allowed."""
    valid = {s.value for s in StepStatus}
    if new not in valid:
        raise InvalidTransitionError(
            f"Unknown step status '{new}'",
            details={"status": new, "allowed": sorted(valid)},
        )
    if new == current:
        return
    if current in TERMINAL_STEP_STATUSES:
        raise InvalidTransitionError(
            f"Step is already '{current}' and can no longer change",
            details={"from": current, "to": new, "terminal": True},
        )
    if new not in STEP_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(
            f"Cannot move step from '{current}' to '{new}'",
            details={"from": current, "to": new},
        )


def apply_step_changes(
    step: Any,
    *,
    status: str | None = None,
    fields: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> None:
    """
    Apply a status change and field edits to any step-like object.

    Shared by the database path and the in-memory fallback so both enforce
    the same rules:
        - transitions are validated first; nothing changes on rejection
        - `name` cannot be blanked
        - an empty `completed_date` never overwrites a stored one
        - becoming `completed` stamps `completed_date` (server time unless supplied)
    """
    fields = fields or {}
    if status is not None:
        check_transition(step.status, status)

    for key, value in fields.items():
        if key not in EDITABLE_STEP_FIELDS:
            continue
        if key == "name" and not (value or "").strip():
            continue
        if key == "completed_date" and not value:
            continue
        setattr(step, key, value.strip() if key == "name" else value)

    if status is not None and status != step.status:
        step.status = status
        if status == StepStatus.COMPLETED and not fields.get("completed_date"):
            step.completed_date = now or utcnow()
        elif status != StepStatus.COMPLETED:
            step.completed_date = None


async def update_step(
    db: AsyncSession,
    step_id: int,
    *,
    status: str | None = None,
    **fields: Any,
) -> tuple[PipelineStep, int]:
    """
    Transition and/or edit one step, then recompute the entity probability.

    Returns:
        (step, new_entity_probability)
    """
    step = await step_repository.get_step(db, step_id, for_update=True)
    if step is None:
        raise NotFoundError("Step not found", step_id=step_id)

    previous = step.status
    apply_step_changes(step, status=status, fields=fields)
    await db.flush()

    probability = await recompute_probability(db, step.entity_id)

    logger.info(
        "Step updated",
        step_id=step_id,
        entity_id=step.entity_id,
        previous_status=previous,
        status=step.status,
        probability=probability,
    )
    return step, probability


async def create_step(
    db: AsyncSession,
    entity_id: int,
    *,
    name: str,
    description: str | None = None,
    step_order: int | None = None,
    probability_percent: int | None = 0,
    due_date: date | None = None,
    estimated_days: int | None = None,
    assigned_to: str | None = None,
) -> PipelineStep:
    """Add a manual step, appended after the last one unless an order is given."""
    entity = await entity_repository.get_entity(db, entity_id)
    if entity is None:
        raise NotFoundError("Entity not found", entity_id=entity_id)

    if step_order is None:
        step_order = await step_repository.next_step_order(db, entity_id)
    elif step_order < 1:
        raise InvalidReorderError("Step order must be positive", entity_id=entity_id, details={"order": step_order})
    elif any(s.step_order == step_order for s in await step_repository.list_steps(db, entity_id)):
        raise InvalidReorderError(
            "Step order already in use",
            entity_id=entity_id,
            details={"order": step_order},
        )

    (step,) = await step_repository.add_steps(
        db,
        entity_id,
        [
            {
                "name": name.strip(),
                "description": description,
                "step_order": step_order,
                "probability_percent": probability_percent,
                "due_date": due_date,
                "estimated_days": estimated_days,
                "assigned_to": assigned_to,
            }
        ],
    )
    logger.info("Step created", entity_id=entity_id, step_id=step.id, order=step_order)
    return step


async def delete_step(db: AsyncSession, step_id: int) -> tuple[int, int]:
    """
    Delete one step and recompute probability.  Remaining orders are not renumbered.

    Returns:
        (entity_id, new_entity_probability)
    """
    step = await step_repository.get_step(db, step_id)
    if step is None:
        raise NotFoundError("Step not found", step_id=step_id)

    entity_id = step.entity_id
    await step_repository.delete_step(db, step_id)
    probability = await recompute_probability(db, entity_id)

    logger.info("Step deleted", step_id=step_id, entity_id=entity_id, probability=probability)
    return entity_id, probability
