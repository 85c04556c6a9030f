"""
Step instantiation and template-change propagation.

Turns a template (or the built-in default sequence) into concrete step
instances for one entity.  Every function here runs inside the caller's
transaction and only flushes.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.constants import DEFAULT_STEP_WEIGHT, DEFAULT_STEPS, StepStatus
from leadflow.core.errors import NotFoundError
from leadflow.core.logging import get_logger
from leadflow.db.models.entity import PipelineEntity
from leadflow.db.models.step import PipelineStep
from leadflow.db.models.template import TemplateStep
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository
from leadflow.repositories import templates as template_repository
from leadflow.workflow.records import BackfillRecord

logger = get_logger(__name__)


def default_step_specs() -> list[dict[str, Any]]:
    """The fixed ten-step sequence, equal weights."""
    return [
        {
            "name": spec["name"],
            "description": spec["description"],
            "estimated_days": spec["estimated_days"],
            "step_order": order,
            "probability_percent": DEFAULT_STEP_WEIGHT,
            "status": StepStatus.PENDING.value,
        }
        for order, spec in enumerate(DEFAULT_STEPS, start=1)
    ]


def template_step_specs(template_steps: Iterable[TemplateStep]) -> list[dict[str, Any]]:
    """Copy template steps in order; missing weights become 0."""
    return [
        {
            "name": ts.name,
            "description": ts.description,
            "estimated_days": ts.estimated_days,
            "step_order": ts.step_order,
            "probability_percent": ts.probability_percent or 0,
            "status": StepStatus.PENDING.value,
        }
        for ts in sorted(template_steps, key=lambda ts: ts.step_order)
    ]


async def resolve_step_specs(
    db: AsyncSession,
    template_id: int | None,
) -> tuple[list[dict[str, Any]], int | None]:
    """
    Step specs for a template id.

    Returns:
        (specs, applied_template_id). `applied_template_id` is None when the
        default sequence was used (no id, unknown/inactive id, or empty template).
    """
    if template_id is None:
        return default_step_specs(), None

    template = await template_repository.get_template(db, template_id, active_only=True)
    if template is None:
        logger.warning("Template unavailable, using default steps", template_id=template_id)
        return default_step_specs(), None

    if not template.steps:
        logger.info("Template has no steps, using default steps", template_id=template_id)
        return default_step_specs(), None

    return template_step_specs(template.steps), template.id


async def instantiate_steps(
    db: AsyncSession,
    entity_id: int,
    template_id: int | None,
) -> list[PipelineStep]:
    """
    Materialize steps for an entity.

    Idempotent: an entity that already has steps gets them back unchanged.
    Never produces zero steps.  Probability is left untouched.
    """
    existing = await step_repository.list_steps(db, entity_id)
    if existing:
        return existing

    specs, applied_template_id = await resolve_step_specs(db, template_id)
    rows = await step_repository.add_steps(db, entity_id, specs)

    if applied_template_id is not None:
        await template_repository.increment_usage(db, applied_template_id)

    logger.info(
        "Steps instantiated",
        entity_id=entity_id,
        template_id=applied_template_id,
        count=len(rows),
        source="template" if applied_template_id is not None else "default",
    )
    return sorted(rows, key=lambda s: s.step_order)


async def change_entity_template(
    db: AsyncSession,
    entity_id: int,
    new_template_id: int | None,
) -> tuple[PipelineEntity, list[PipelineStep], int]:
    """
    Replace an entity's steps with those of another template.

    Deletes every existing step (their comments cascade), points the
    entity at the new template, re-instantiates and resets probability
    to 0.  All inside the caller's transaction.

    Returns:
        (entity, new_steps, removed_step_count)
    """
    entity = await entity_repository.get_entity(db, entity_id, for_update=True)
    if entity is None:
        raise NotFoundError("Entity not found", entity_id=entity_id)

    if new_template_id is not None:
        template = await template_repository.get_template(db, new_template_id, active_only=True)
        if template is None:
            raise NotFoundError(
                "Template not found or inactive",
                entity_id=entity_id,
                details={"template_id": new_template_id},
            )

    removed = await step_repository.delete_entity_steps(db, entity_id)
    entity.template_id = new_template_id
    entity.probability = 0
    await db.flush()

    steps = await instantiate_steps(db, entity_id, new_template_id)

    logger.info(
        "Entity template changed",
        entity_id=entity_id,
        template_id=new_template_id,
        removed_steps=removed,
        created_steps=len(steps),
    )
    return entity, steps, removed


async def backfill_missing_steps(db: AsyncSession) -> BackfillRecord:
    """Instantiate steps for every entity that has none."""
    entity_ids = await entity_repository.list_entity_ids_without_steps(db)
    created = 0

    for entity_id in entity_ids:
        entity = await entity_repository.get_entity(db, entity_id)
        if entity is None:
            continue
        steps = await instantiate_steps(db, entity_id, entity.template_id)
        created += len(steps)

    if entity_ids:
        logger.info("Backfilled missing steps", entities=len(entity_ids), steps=created)

    return BackfillRecord(entities_fixed=len(entity_ids), steps_created=created, entity_ids=entity_ids)
