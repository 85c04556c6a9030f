"""Shared test fixtures for the leadflow test suite."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, AsyncGenerator

# Keep the module-level engine off PostgreSQL while the suite imports leadflow.
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from leadflow.core.config import Settings
from leadflow.db.models import Base
from leadflow.db.session import build_engine, build_sessionmaker
from leadflow.repositories import templates as template_repository
from leadflow.resilience.fallback import FallbackStore
from leadflow.resilience.gateway import WorkflowGateway
from leadflow.workflow.service import WorkflowService


def template_steps(*weights: int | None, prefix: str = "Step") -> list[dict[str, Any]]:
    """Step specs named 'Step 1', 'Step 2', … with the given weights."""
    return [
        {"name": f"{prefix} {i}", "estimated_days": 2, "probability_percent": w}
        for i, w in enumerate(weights, start=1)
    ]


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'leadflow.db'}"


@pytest.fixture
async def engine(db_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Engine on a fresh temp-file SQLite database with all tables created."""
    engine = build_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_sessionmaker(engine)


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A session for calling workflow functions directly (they only flush)."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def service(session_factory: async_sessionmaker[AsyncSession]) -> WorkflowService:
    return WorkflowService(session_factory)


@pytest.fixture
def fallback() -> FallbackStore:
    return FallbackStore()


@pytest.fixture
def config() -> Settings:
    return Settings(DB_HEALTH_TIMEOUT_SECONDS=2.0, SCHEMA_SELF_HEAL_ON_DRIFT=False, FALLBACK_ENABLED=True)


@pytest.fixture
def gateway(engine: AsyncEngine, fallback: FallbackStore, service: WorkflowService, config: Settings) -> WorkflowGateway:
    return WorkflowGateway(engine, fallback=fallback, service=service, config=config)


@pytest.fixture
async def down_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine pointing at a database file that cannot be opened."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'leadflow.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def down_gateway(down_engine: AsyncEngine, fallback: FallbackStore, config: Settings) -> WorkflowGateway:
    return WorkflowGateway(down_engine, fallback=fallback, config=config)


@pytest.fixture
async def make_template(db: AsyncSession):
    """Factory: create a template with the given weights inside the test session."""

    async def _make(*weights: int | None, name: str = "Test Template", prefix: str = "Step"):
        return await template_repository.create_template(
            db, name=name, description=None, steps=template_steps(*weights, prefix=prefix)
        )

    return _make
