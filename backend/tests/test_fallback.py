"""In-memory fallback store: seed data and the rules it shares with the database path."""
from __future__ import annotations

import pytest

from leadflow.core.errors import InvalidReorderError, InvalidTransitionError, NotFoundError
from leadflow.resilience.fallback import FallbackStore


class TestSeed:
    def test_seeded_entities_and_codes(self, fallback: FallbackStore) -> None:
        leads = fallback.list_entities(kind="lead")
        vcs = fallback.list_entities(kind="vc")

        assert sorted(e.display_code for e in leads) == ["#0001", "#0002", "#0003"]
        assert [e.display_code for e in vcs] == ["#VC001"]

    def test_seeded_probabilities_follow_completed_steps(self, fallback: FallbackStore) -> None:
        by_code = {e.display_code: e for e in fallback.list_entities()}

        assert by_code["#0001"].probability == 50
        assert by_code["#0002"].probability == 0
        assert by_code["#0003"].probability == 100
        assert by_code["#VC001"].probability == 10

    def test_every_entity_has_steps(self, fallback: FallbackStore) -> None:
        for entity in fallback.list_entities():
            assert fallback.get_steps(entity.id)

    def test_templates_are_seeded(self, fallback: FallbackStore) -> None:
        templates = fallback.list_templates()

        assert len(templates) == 3
        assert all(sum(s.probability_percent for s in t.steps) == 100 for t in templates)

    def test_unseeded_store_is_empty(self) -> None:
        store = FallbackStore(seed=False)

        assert store.list_entities() == []
        assert store.list_templates() == []


class TestEntities:
    def test_create_without_template_gets_default_steps(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="  Fresh lead ")

        steps = fallback.get_steps(entity.id)
        assert entity.title == "Fresh lead"
        assert entity.display_code == "#0004"
        assert len(steps) == 10
        assert [s.step_order for s in steps] == list(range(1, 11))

    def test_create_from_seeded_template(self, fallback: FallbackStore) -> None:
        template = next(t for t in fallback.list_templates() if t.name == "SMB Onboarding Lite")

        entity = fallback.create_entity(kind="vc", title="Bridge", template_id=template.id)

        assert entity.display_code == "#VC002"
        assert [s.name for s in fallback.get_steps(entity.id)] == [s.name for s in template.steps]
        assert fallback.get_template(template.id).usage_count == template.usage_count + 1

    def test_unknown_template_falls_back_to_defaults(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="X", template_id=999)

        assert entity.template_id is None
        assert len(fallback.get_steps(entity.id)) == 10

    def test_kind_mismatch_is_not_found(self, fallback: FallbackStore) -> None:
        vc = fallback.list_entities(kind="vc")[0]

        with pytest.raises(NotFoundError):
            fallback.get_entity(vc.id, kind="lead")

    def test_returned_records_are_copies(self, fallback: FallbackStore) -> None:
        entity = fallback.list_entities()[0]
        entity.title = "mutated"

        assert fallback.get_entity(entity.id).title != "mutated"

    def test_update_ignores_unknown_fields(self, fallback: FallbackStore) -> None:
        entity = fallback.list_entities()[0]

        updated = fallback.update_entity(entity.id, status="lost", probability=99)

        assert updated.status == "lost"
        assert updated.probability == entity.probability

    def test_delete_removes_steps(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Temp")
        step_ids = [s.id for s in fallback.get_steps(entity.id)]

        fallback.delete_entity(entity.id)

        with pytest.raises(NotFoundError):
            fallback.get_entity(entity.id)
        with pytest.raises(NotFoundError):
            fallback.update_step(step_ids[0], status="completed")


class TestSteps:
    def test_completion_updates_probability(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Roll-up")
        first = fallback.get_steps(entity.id)[0]

        result = fallback.update_step(first.id, status="completed")

        assert result.probability == 10
        assert result.step.completed_date is not None
        assert fallback.get_entity(entity.id).probability == 10

    def test_terminal_status_is_final(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Terminal")
        first = fallback.get_steps(entity.id)[0]
        fallback.update_step(first.id, status="cancelled")

        with pytest.raises(InvalidTransitionError):
            fallback.update_step(first.id, status="pending")

    def test_create_and_delete_step(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Manual")

        extra = fallback.create_step(entity.id, name="Extra", probability_percent=5)
        assert extra.step_order == 11

        fallback.update_step(extra.id, status="completed")
        deletion = fallback.delete_step(extra.id)
        assert deletion.probability == 0
        assert len(fallback.get_steps(entity.id)) == 10

    def test_create_step_with_taken_order(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Clash")

        with pytest.raises(InvalidReorderError):
            fallback.create_step(entity.id, name="Clash", step_order=3)

    def test_reorder_swap(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Swap")
        first, second = fallback.get_steps(entity.id)[:2]

        record = fallback.reorder_steps(entity.id, [(first.id, 2), (second.id, 1)])

        assert [s.id for s in record.steps[:2]] == [second.id, first.id]
        assert record.template_synced is False

    def test_reorder_collision_changes_nothing(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Collide")
        steps = fallback.get_steps(entity.id)

        with pytest.raises(InvalidReorderError):
            fallback.reorder_steps(entity.id, [(steps[0].id, 2)])

        assert [s.step_order for s in fallback.get_steps(entity.id)] == list(range(1, 11))

    def test_progress_and_stats(self, fallback: FallbackStore) -> None:
        acme = next(e for e in fallback.list_entities() if e.display_code == "#0001")

        summary = fallback.progress_summary(acme.id)
        stats = fallback.entity_stats(kind="lead")

        assert summary.completed_count == 2
        assert summary.probability == 50
        assert summary.current_step.name == "Contract Signing"
        assert stats.total == 3
        assert stats.by_status == {"in-progress": 2, "won": 1}


class TestStandIns:
    def test_fallback_ids_stay_negative(self, fallback: FallbackStore) -> None:
        entity = fallback.create_entity(kind="lead", title="Offline")

        assert all(e.id < 0 for e in fallback.list_entities())
        assert all(s.id < 0 for s in fallback.get_steps(entity.id))
        assert all(t.id < 0 for t in fallback.list_templates())

    def test_unknown_store_id_gets_default_steps(self, fallback: FallbackStore) -> None:
        steps = fallback.get_steps(5, kind="lead")
        entity = fallback.get_entity(5, kind="lead")

        assert entity.display_code == "#0005"
        assert entity.probability == 0
        assert [s.step_order for s in steps] == list(range(1, 11))
        assert all(s.entity_id == 5 for s in steps)

    def test_stand_in_keeps_changes(self, fallback: FallbackStore) -> None:
        first = fallback.get_steps(7, kind="lead")[0]

        fallback.update_step(first.id, status="completed")

        assert fallback.get_entity(7).probability == 10
        assert fallback.progress_summary(7).completed_count == 1

    def test_stand_in_kind_is_fixed_on_first_access(self, fallback: FallbackStore) -> None:
        assert fallback.get_entity(4, kind="vc").display_code == "#VC004"

        with pytest.raises(NotFoundError):
            fallback.get_steps(4, kind="lead")

    def test_unknown_fallback_id_is_not_found(self, fallback: FallbackStore) -> None:
        with pytest.raises(NotFoundError):
            fallback.get_entity(-999)
