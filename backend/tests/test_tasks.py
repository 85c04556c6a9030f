"""Celery maintenance tasks (run eagerly, in-process) and the template seed script."""
from __future__ import annotations

import asyncio

import pytest

from leadflow.core.config import settings
from leadflow.db.schema import ensure_schema
from leadflow.db.session import build_engine, build_sessionmaker
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import templates as template_repository
from leadflow.tasks.maintenance_tasks import backfill_missing_steps, resync_entity_weights
from leadflow.workflow.service import WorkflowService
from scripts.seed_templates import seed


def _weights(*weights: int) -> list[dict]:
    return [{"name": f"Step {i}", "probability_percent": w} for i, w in enumerate(weights, start=1)]


def _run(db_url: str, fn):
    async def runner():
        engine = build_engine(db_url)
        try:
            await ensure_schema(engine)
            return await fn(build_sessionmaker(engine))
        finally:
            await engine.dispose()

    return asyncio.run(runner())


@pytest.fixture
def task_db(db_url: str, monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setattr(settings, "DATABASE_URL_OVERRIDE", db_url)
    return db_url


def test_backfill_creates_missing_steps(task_db: str) -> None:
    async def bare_entities(session_factory):
        async with session_factory() as db, db.begin():
            a = await entity_repository.create_entity(db, kind="lead", title="No steps")
            b = await entity_repository.create_entity(db, kind="vc", title="No steps either")
            return [a.id, b.id]

    ids = _run(task_db, bare_entities)

    result = backfill_missing_steps()

    assert result["status"] == "ok"
    assert result["entities_fixed"] == 2
    assert result["steps_created"] == 20
    assert result["entity_ids"] == ids

    assert backfill_missing_steps()["entities_fixed"] == 0


def test_resync_weights_task(task_db: str) -> None:
    async def entity_with_edited_template(session_factory):
        service = WorkflowService(session_factory)
        template = await service.create_template(name="Tasked", steps=_weights(50, 50))
        entity = await service.create_entity(kind="lead", title="Deal", template_id=template.id)
        await service.update_template(template.id, steps=_weights(70, 30))
        return entity.id

    entity_id = _run(task_db, entity_with_edited_template)

    result = resync_entity_weights(entity_id)

    assert result["status"] == "ok"
    assert result["updated_steps"] == 2
    assert result["probability"] == 0


def test_resync_unknown_entity(task_db: str) -> None:
    async def nothing(session_factory):
        return None

    _run(task_db, nothing)

    assert resync_entity_weights(12345) == {"entity_id": 12345, "status": "not_found"}


@pytest.mark.asyncio
async def test_seed_templates_is_idempotent(session_factory) -> None:
    assert await seed(session_factory) == 3
    assert await seed(session_factory) == 0

    async with session_factory() as db:
        templates = await template_repository.list_templates(db)
    assert {t.name for t in templates} == {
        "Standard Client Onboarding",
        "SMB Onboarding Lite",
        "Series A Funding Process",
    }
