"""
Reorder synchronizer.

Reordering an entity's steps is all-or-nothing and never lets two steps
of the same entity share an order, not even between statements:

    phase 1: every moved step is parked at  -(old_order) - 1000
    phase 2: every moved step gets its final order

When the entity came from a template, the template's steps are moved the
same way so that new entities created from it inherit the new order.
Template sync runs in a SAVEPOINT; its failure is logged and reported but
never undoes the instance reorder.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.constants import REORDER_PARKING_OFFSET
from leadflow.core.errors import InvalidReorderError, NotFoundError
from leadflow.core.logging import get_logger
from leadflow.db.models.step import PipelineStep
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository
from leadflow.repositories import templates as template_repository
from leadflow.workflow.matching import DEFAULT_MATCHER, StepMatcher, find_match
from leadflow.workflow.records import ReorderRecord, StepRecord, SyncMismatch

logger = get_logger(__name__)


def parked_order(order: int) -> int:
    return -order - REORDER_PARKING_OFFSET


def validate_moves(
    current_orders: dict[int, int],
    moves: Iterable[tuple[int, int]],
    *,
    entity_id: int,
) -> dict[int, int]:
    """
    Check a reorder request against the entity's current step orders.

    Args:
        current_orders: step_id -> current order, for every step of the entity.
        moves: (step_id, new_order) pairs.

    Returns:
        step_id -> new order, only for steps whose order actually changes.
    """
    requested: dict[int, int] = {}
    for step_id, order in moves:
        if step_id not in current_orders:
            raise NotFoundError("Step does not belong to this entity", entity_id=entity_id, step_id=step_id)
        if order < 1:
            raise InvalidReorderError(
                "Step order must be positive",
                entity_id=entity_id,
                step_id=step_id,
                details={"order": order},
            )
        if step_id in requested:
            raise InvalidReorderError("Step listed twice", entity_id=entity_id, step_id=step_id)
        requested[step_id] = order

    final = {sid: requested.get(sid, order) for sid, order in current_orders.items()}
    if len(set(final.values())) != len(final):
        raise InvalidReorderError(
            "Reorder would give two steps the same order",
            entity_id=entity_id,
            details={"orders": sorted(final.values())},
        )

    return {sid: order for sid, order in requested.items() if current_orders[sid] != order}


async def reorder_steps(
    db: AsyncSession,
    entity_id: int,
    moves: Iterable[tuple[int, int]],
    *,
    matcher: StepMatcher = DEFAULT_MATCHER,
) -> ReorderRecord:
    """Apply a reorder to an entity's steps and mirror it onto its template."""
    entity = await entity_repository.get_entity(db, entity_id, for_update=True)
    if entity is None:
        raise NotFoundError("Entity not found", entity_id=entity_id)

    steps = await step_repository.list_steps(db, entity_id)
    by_id = {s.id: s for s in steps}
    changes = validate_moves({s.id: s.step_order for s in steps}, moves, entity_id=entity_id)

    moved = [(by_id[sid], by_id[sid].step_order, new_order) for sid, new_order in changes.items()]

    if moved:
        for step, old_order, _ in moved:
            step.step_order = parked_order(old_order)
        await db.flush()
        for step, _, new_order in moved:
            step.step_order = new_order
        await db.flush()
        logger.info("Steps reordered", entity_id=entity_id, moved=len(moved))

    record = ReorderRecord(
        steps=[StepRecord.model_validate(s) for s in sorted(steps, key=lambda s: s.step_order)],
        template_id=entity.template_id,
    )

    if entity.template_id is None or not moved:
        return record

    try:
        async with db.begin_nested():
            record.mismatches = await sync_template_order(db, entity.template_id, moved, matcher=matcher)
        record.template_synced = True
    except SQLAlchemyError as exc:
        logger.warning(
            "Template order sync failed, instance reorder kept",
            entity_id=entity_id,
            template_id=entity.template_id,
            error=str(exc),
        )
        record.mismatches = [
            SyncMismatch(
                step_id=step.id,
                step_name=step.name,
                old_order=old_order,
                new_order=new_order,
                reason="template sync failed",
            )
            for step, old_order, new_order in moved
        ]

    return record


async def sync_template_order(
    db: AsyncSession,
    template_id: int,
    moved: list[tuple[PipelineStep, int, int]],
    *,
    matcher: StepMatcher = DEFAULT_MATCHER,
) -> list[SyncMismatch]:
    """
    Move the template steps matching `moved` instance steps to the same new orders.

    Matching uses each instance step's order *before* the reorder.
    """
    template_steps = await template_repository.get_template_steps(db, template_id)
    mismatches: list[SyncMismatch] = []
    targets: dict[int, int] = {}
    matched_steps = {}

    for step, old_order, new_order in moved:
        match = find_match(step.name, old_order, template_steps, matcher, exclude=set(targets))
        if match is None:
            mismatches.append(
                SyncMismatch(
                    step_id=step.id,
                    step_name=step.name,
                    old_order=old_order,
                    new_order=new_order,
                    reason="no matching template step",
                )
            )
            continue
        targets[match.id] = new_order
        matched_steps[match.id] = (step, old_order, new_order)

    final = [targets.get(ts.id, ts.step_order) for ts in template_steps]
    if len(set(final)) != len(final):
        # The template has steps the entity does not (or vice versa); moving would collide.
        for step, old_order, new_order in matched_steps.values():
            mismatches.append(
                SyncMismatch(
                    step_id=step.id,
                    step_name=step.name,
                    old_order=old_order,
                    new_order=new_order,
                    reason="order collides with another template step",
                )
            )
        targets = {}

    if targets:
        by_id = {ts.id: ts for ts in template_steps}
        for ts_id in targets:
            by_id[ts_id].step_order = parked_order(by_id[ts_id].step_order)
        await db.flush()
        for ts_id, new_order in targets.items():
            by_id[ts_id].step_order = new_order
        await db.flush()

    for mismatch in mismatches:
        logger.warning(
            "Template step not synced",
            template_id=template_id,
            step_id=mismatch.step_id,
            step_name=mismatch.step_name,
            reason=mismatch.reason,
        )
    if targets:
        logger.info("Template order synced", template_id=template_id, moved=len(targets))

    return mismatches
