"""Probability roll-up: pure rule and recompute inside a transaction."""
from __future__ import annotations

import pytest

from leadflow.core.constants import StepStatus
from leadflow.repositories import entities as entity_repository
from leadflow.workflow import instantiation, lifecycle
from leadflow.workflow.probability import compute_probability, probability_from_steps


class TestComputeProbability:
    def test_no_completed_steps_is_zero(self) -> None:
        assert compute_probability([]) == 0

    def test_sums_completed_weights(self) -> None:
        assert compute_probability([10, 20, 5]) == 35

    def test_null_weights_count_as_zero(self) -> None:
        assert compute_probability([None, 40, None]) == 40

    def test_clamped_to_100(self) -> None:
        assert compute_probability([60, 60]) == 100

    def test_rounds_fractional_weights(self) -> None:
        assert compute_probability([33.4, 33.4]) == 67


class _Step:
    def __init__(self, status: str, weight: int | None) -> None:
        self.status = status
        self.probability_percent = weight


def test_probability_from_steps_ignores_non_completed() -> None:
    steps = [
        _Step(StepStatus.COMPLETED, 30),
        _Step(StepStatus.IN_PROGRESS, 30),
        _Step(StepStatus.CANCELLED, 30),
        _Step(StepStatus.PENDING, 10),
    ]
    assert probability_from_steps(steps) == 30


@pytest.mark.asyncio
async def test_two_step_template_rolls_up_20_then_100(db, make_template) -> None:
    template = await make_template(20, 80)
    entity = await entity_repository.create_entity(db, kind="lead", title="Acme", template_id=template.id)
    steps = await instantiation.instantiate_steps(db, entity.id, template.id)

    assert [s.status for s in steps] == [StepStatus.PENDING, StepStatus.PENDING]
    assert entity.probability == 0

    _, probability = await lifecycle.update_step(db, steps[0].id, status=StepStatus.COMPLETED)
    assert probability == 20
    assert entity.probability == 20

    _, probability = await lifecycle.update_step(db, steps[1].id, status=StepStatus.COMPLETED)
    assert probability == 100


@pytest.mark.asyncio
async def test_weights_over_100_are_clamped(db, make_template) -> None:
    template = await make_template(70, 70)
    entity = await entity_repository.create_entity(db, kind="lead", title="Over", template_id=template.id)
    steps = await instantiation.instantiate_steps(db, entity.id, template.id)

    for step in steps:
        await lifecycle.update_step(db, step.id, status=StepStatus.COMPLETED)

    assert entity.probability == 100
