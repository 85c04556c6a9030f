"""Schema ensure on empty and drifted SQLite databases, plus session setup."""
from __future__ import annotations

import pytest
from sqlalchemy import inspect, text

from leadflow.db.schema import ensure_schema
from leadflow.db.session import build_engine, build_sessionmaker
from leadflow.repositories import entities as entity_repository


async def _tables(engine) -> set[str]:
    async with engine.connect() as conn:
        return set(await conn.run_sync(lambda c: inspect(c).get_table_names()))


async def _columns(engine, table: str) -> set[str]:
    async with engine.connect() as conn:
        return {c["name"] for c in await conn.run_sync(lambda c: inspect(c).get_columns(table))}


@pytest.fixture
async def empty_engine(db_url: str):
    engine = build_engine(db_url)
    yield engine
    await engine.dispose()


@pytest.mark.asyncio
async def test_creates_all_tables(empty_engine) -> None:
    actions = await ensure_schema(empty_engine)

    assert await _tables(empty_engine) >= {
        "onboarding_templates",
        "template_steps",
        "pipeline_entities",
        "pipeline_steps",
        "step_comments",
    }
    assert "create table pipeline_steps" in actions


@pytest.mark.asyncio
async def test_is_idempotent(engine) -> None:
    assert await ensure_schema(engine) == []
    assert await ensure_schema(engine) == []


@pytest.mark.asyncio
async def test_adds_missing_column_with_default(engine) -> None:
    async with engine.begin() as conn:
        await conn.execute(text("ALTER TABLE pipeline_steps DROP COLUMN probability_percent"))

    actions = await ensure_schema(engine)

    assert actions == ["add column pipeline_steps.probability_percent"]
    assert "probability_percent" in await _columns(engine, "pipeline_steps")


@pytest.mark.asyncio
async def test_recreates_dropped_table(engine) -> None:
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE step_comments"))

    actions = await ensure_schema(engine)

    assert actions == ["create table step_comments"]
    assert "step_comments" in await _tables(engine)


@pytest.mark.asyncio
async def test_sqlite_connections_enforce_foreign_keys(empty_engine) -> None:
    async with empty_engine.connect() as conn:
        assert (await conn.execute(text("PRAGMA foreign_keys"))).scalar_one() == 1


@pytest.mark.asyncio
async def test_sessions_keep_loaded_values_after_commit(engine) -> None:
    factory = build_sessionmaker(engine)
    async with factory() as db, db.begin():
        entity = await entity_repository.create_entity(db, kind="lead", title="Kept")

    assert entity.display_code == "#0001"
    assert entity.title == "Kept"
