"""
Weight maintenance.

Instance weights are copied at creation and otherwise only change here:
`resync_weights` re-copies them from the matching template steps, e.g.
after someone edits the template's weights.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.constants import MAX_PROBABILITY
from leadflow.core.errors import NotFoundError
from leadflow.core.logging import get_logger
from leadflow.db.models.template import Template
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository
from leadflow.repositories import templates as template_repository
from leadflow.workflow.matching import DEFAULT_MATCHER, StepMatcher, find_match
from leadflow.workflow.probability import recompute_probability
from leadflow.workflow.records import TemplateRecord, TemplateWeightReport, WeightResyncRecord

logger = get_logger(__name__)


async def resync_weights(
    db: AsyncSession,
    entity_id: int,
    *,
    matcher: StepMatcher = DEFAULT_MATCHER,
) -> WeightResyncRecord:
    """Copy template weights onto matched instance steps, then recompute probability."""
    entity = await entity_repository.get_entity(db, entity_id)
    if entity is None:
        raise NotFoundError("Entity not found", entity_id=entity_id)

    updated = 0
    if entity.template_id is not None:
        template_steps = await template_repository.get_template_steps(db, entity.template_id)
        for step in await step_repository.list_steps(db, entity_id):
            match = find_match(step.name, step.step_order, template_steps, matcher)
            if match is None or match.probability_percent is None:
                continue
            if step.probability_percent != match.probability_percent:
                step.probability_percent = match.probability_percent
                updated += 1
        await db.flush()

    probability = await recompute_probability(db, entity_id)
    logger.info(
        "Weights re-synced",
        entity_id=entity_id,
        template_id=entity.template_id,
        updated_steps=updated,
        probability=probability,
    )
    return WeightResyncRecord(entity_id=entity_id, updated_steps=updated, probability=probability)


def weight_report(template: Template | TemplateRecord) -> TemplateWeightReport:
    total = sum(ts.probability_percent or 0 for ts in template.steps)
    return TemplateWeightReport(
        template_id=template.id,
        name=template.name,
        total_weight=total,
        step_count=len(template.steps),
        is_balanced=total == MAX_PROBABILITY,
    )


def total_weight(steps: Iterable[dict]) -> int:
    return sum(spec.get("probability_percent") or 0 for spec in steps)


async def template_weight_report(
    db: AsyncSession,
    template_id: int | None = None,
) -> list[TemplateWeightReport]:
    """Total weight per template, flagging those that do not add up to 100."""
    if template_id is not None:
        template = await template_repository.get_template(db, template_id)
        if template is None:
            raise NotFoundError("Template not found", details={"template_id": template_id})
        templates = [template]
    else:
        templates = await template_repository.list_templates(db, include_inactive=True)

    return [weight_report(t) for t in templates]
