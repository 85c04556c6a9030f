"""Step transitions, field edits, manual create and delete."""
from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from leadflow.core.constants import StepStatus
from leadflow.core.errors import InvalidReorderError, InvalidTransitionError, NotFoundError
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository
from leadflow.workflow import instantiation, lifecycle
from leadflow.workflow.lifecycle import check_transition


class TestTransitionTable:
    @pytest.mark.parametrize(
        ("current", "new"),
        [
            ("pending", "in_progress"),
            ("pending", "completed"),
            ("pending", "cancelled"),
            ("in_progress", "completed"),
            ("in_progress", "cancelled"),
            ("in_progress", "pending"),
            ("completed", "completed"),
            ("cancelled", "cancelled"),
        ],
    )
    def test_allowed(self, current: str, new: str) -> None:
        check_transition(current, new)

    @pytest.mark.parametrize(
        ("current", "new"),
        [
            ("completed", "pending"),
            ("completed", "in_progress"),
            ("completed", "cancelled"),
            ("cancelled", "pending"),
            ("cancelled", "completed"),
        ],
    )
    def test_terminal_states_are_final(self, current: str, new: str) -> None:
        with pytest.raises(InvalidTransitionError) as excinfo:
            check_transition(current, new)
        assert excinfo.value.details["terminal"] is True
        assert excinfo.value.details["from"] == current

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError) as excinfo:
            check_transition("pending", "done")
        assert excinfo.value.status_code == 409
        assert "allowed" in excinfo.value.details


@pytest.fixture
async def two_steps(db, make_template):
    template = await make_template(40, 60)
    entity = await entity_repository.create_entity(db, kind="lead", title="Globex", template_id=template.id)
    steps = await instantiation.instantiate_steps(db, entity.id, template.id)
    return entity, steps


class TestUpdateStep:
    @pytest.mark.asyncio
    async def test_completion_stamps_completed_date(self, db, two_steps) -> None:
        _, steps = two_steps
        step, _ = await lifecycle.update_step(db, steps[0].id, status=StepStatus.COMPLETED)
        assert step.completed_date is not None

    @pytest.mark.asyncio
    async def test_supplied_completed_date_is_kept(self, db, two_steps) -> None:
        _, steps = two_steps
        when = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        step, _ = await lifecycle.update_step(db, steps[0].id, status=StepStatus.COMPLETED, completed_date=when)
        assert step.completed_date == when

    @pytest.mark.asyncio
    async def test_empty_completed_date_never_overwrites(self, db, two_steps) -> None:
        _, steps = two_steps
        step, _ = await lifecycle.update_step(db, steps[0].id, status=StepStatus.COMPLETED)
        stamped = step.completed_date

        step, _ = await lifecycle.update_step(
            db, steps[0].id, status=StepStatus.COMPLETED, completed_date=None, assigned_to="ana"
        )

        assert step.completed_date == stamped
        assert step.assigned_to == "ana"

    @pytest.mark.asyncio
    async def test_rejected_transition_changes_nothing(self, db, two_steps) -> None:
        entity, steps = two_steps
        await lifecycle.update_step(db, steps[0].id, status=StepStatus.COMPLETED)

        with pytest.raises(InvalidTransitionError):
            await lifecycle.update_step(db, steps[0].id, status=StepStatus.PENDING, name="Renamed")

        step = await step_repository.get_step(db, steps[0].id)
        assert step.status == StepStatus.COMPLETED
        assert step.name == "Step 1"
        assert entity.probability == 40

    @pytest.mark.asyncio
    async def test_field_edits_without_status(self, db, two_steps) -> None:
        _, steps = two_steps
        step, probability = await lifecycle.update_step(
            db, steps[1].id, due_date=date(2025, 1, 31), description="Send the deck", estimated_days=4
        )
        assert step.due_date == date(2025, 1, 31)
        assert step.description == "Send the deck"
        assert step.estimated_days == 4
        assert step.status == StepStatus.PENDING
        assert probability == 0

    @pytest.mark.asyncio
    async def test_blank_name_is_ignored(self, db, two_steps) -> None:
        _, steps = two_steps
        step, _ = await lifecycle.update_step(db, steps[0].id, name="   ")
        assert step.name == "Step 1"

    @pytest.mark.asyncio
    async def test_back_to_pending_clears_completion(self, db, two_steps) -> None:
        _, steps = two_steps
        await lifecycle.update_step(db, steps[0].id, status=StepStatus.IN_PROGRESS)
        step, probability = await lifecycle.update_step(db, steps[0].id, status=StepStatus.PENDING)
        assert step.status == StepStatus.PENDING
        assert step.completed_date is None
        assert probability == 0

    @pytest.mark.asyncio
    async def test_cancelled_step_does_not_count(self, db, two_steps) -> None:
        _, steps = two_steps
        _, probability = await lifecycle.update_step(db, steps[1].id, status=StepStatus.CANCELLED)
        assert probability == 0

    @pytest.mark.asyncio
    async def test_unknown_step(self, db) -> None:
        with pytest.raises(NotFoundError):
            await lifecycle.update_step(db, 987, status=StepStatus.COMPLETED)


class TestCreateAndDelete:
    @pytest.mark.asyncio
    async def test_manual_step_is_appended(self, db, two_steps) -> None:
        entity, _ = two_steps
        step = await lifecycle.create_step(db, entity.id, name="  Extra call  ", probability_percent=5)
        assert step.step_order == 3
        assert step.name == "Extra call"
        assert step.status == StepStatus.PENDING

    @pytest.mark.asyncio
    async def test_manual_step_with_used_order_rejected(self, db, two_steps) -> None:
        entity, _ = two_steps
        with pytest.raises(InvalidReorderError):
            await lifecycle.create_step(db, entity.id, name="Clash", step_order=2)

    @pytest.mark.asyncio
    async def test_manual_step_unknown_entity(self, db) -> None:
        with pytest.raises(NotFoundError):
            await lifecycle.create_step(db, 555, name="Orphan")

    @pytest.mark.asyncio
    async def test_delete_removes_only_that_weight(self, db, two_steps) -> None:
        entity, steps = two_steps
        await lifecycle.update_step(db, steps[0].id, status=StepStatus.COMPLETED)
        await lifecycle.update_step(db, steps[1].id, status=StepStatus.COMPLETED)
        assert entity.probability == 100

        entity_id, probability = await lifecycle.delete_step(db, steps[1].id)

        assert entity_id == entity.id
        assert probability == 40
        remaining = await step_repository.list_steps(db, entity.id)
        assert [s.step_order for s in remaining] == [1]

    @pytest.mark.asyncio
    async def test_delete_cascades_comments(self, db, two_steps) -> None:
        _, steps = two_steps
        await step_repository.add_comment(db, steps[0].id, author="lee", message="follow up")

        await lifecycle.delete_step(db, steps[0].id)

        assert await step_repository.list_comments(db, steps[0].id) == []

    @pytest.mark.asyncio
    async def test_delete_unknown_step(self, db) -> None:
        with pytest.raises(NotFoundError):
            await lifecycle.delete_step(db, 321)
