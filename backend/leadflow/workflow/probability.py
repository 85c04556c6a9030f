"""
Probability roll-up.

    probability = clamp(round(sum(weight of completed steps)), 0, 100)

Null weights count as 0.  Steps in any other status contribute nothing.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.constants import MAX_PROBABILITY, MIN_PROBABILITY, StepStatus
from leadflow.core.errors import NotFoundError
from leadflow.core.logging import get_logger
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository

logger = get_logger(__name__)


def compute_probability(completed_weights: Iterable[float | int | None]) -> int:
    """Clamp the rounded sum of completed step weights into [0, 100]."""
    total = sum(weight or 0 for weight in completed_weights)
    return max(MIN_PROBABILITY, min(MAX_PROBABILITY, int(round(total))))


def probability_from_steps(steps: Iterable[object]) -> int:
    """Same rule over any step-like objects (ORM rows or records)."""
    return compute_probability(
        getattr(step, "probability_percent", None)
        for step in steps
        if getattr(step, "status", None) == StepStatus.COMPLETED
    )


async def recompute_probability(db: AsyncSession, entity_id: int) -> int:
    """
    Recompute and store an entity's probability inside the caller's transaction.

    The entity row is locked first (FOR UPDATE where the dialect supports it)
    so concurrent step updates on the same entity serialize.
    """
    entity = await entity_repository.get_entity(db, entity_id, for_update=True)
    if entity is None:
        raise NotFoundError("Entity not found", entity_id=entity_id)

    weights = await step_repository.completed_weights(db, entity_id)
    probability = compute_probability(weights)

    if entity.probability != probability:
        logger.info(
            "Probability updated",
            entity_id=entity_id,
            previous=entity.probability,
            probability=probability,
        )
        entity.probability = probability
        await db.flush()

    return probability
