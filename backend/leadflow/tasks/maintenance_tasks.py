"""
Celery tasks — workflow maintenance.

    resync_entity_weights   re-copy template weights onto one entity's steps
    backfill_missing_steps  give every step-less entity its steps (hourly via beat)

Each task runs its coroutine with `asyncio.run()` on a fresh engine, so a
worker process never shares a connection pool across event loops.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError

from leadflow.core.config import settings
from leadflow.core.errors import NotFoundError
from leadflow.db.session import build_engine, build_sessionmaker
from leadflow.tasks import celery_app
from leadflow.workflow.service import WorkflowService

logger = structlog.get_logger("tasks.maintenance")

T = TypeVar("T")


async def _with_service(fn: Callable[[WorkflowService], Awaitable[T]]) -> T:
    """Run `fn` against a service bound to a task-local engine."""
    engine = build_engine(settings.DATABASE_URL)
    try:
        return await fn(WorkflowService(build_sessionmaker(engine)))
    finally:
        await engine.dispose()


@celery_app.task(
    bind=True,
    name="leadflow.tasks.maintenance_tasks.resync_entity_weights",
    autoretry_for=(SQLAlchemyError, OSError),
    retry_backoff=True,
    max_retries=3,
)
def resync_entity_weights(self, entity_id: int) -> dict[str, Any]:
    """Re-sync step weights from the entity's template and recompute probability."""
    task_log = logger.bind(task_id=self.request.id, entity_id=entity_id)
    task_log.info("Weight re-sync started")

    try:
        record = asyncio.run(_with_service(lambda service: service.resync_weights(entity_id)))
    except NotFoundError as exc:
        task_log.warning("Weight re-sync skipped", reason=exc.message)
        return {"entity_id": entity_id, "status": "not_found"}

    task_log.info(
        "Weight re-sync finished",
        updated_steps=record.updated_steps,
        probability=record.probability,
    )
    return {"status": "ok", **record.model_dump()}


@celery_app.task(
    bind=True,
    name="leadflow.tasks.maintenance_tasks.backfill_missing_steps",
    autoretry_for=(SQLAlchemyError, OSError),
    retry_backoff=True,
    max_retries=3,
)
def backfill_missing_steps(self) -> dict[str, Any]:
    """Instantiate steps for every entity that has none."""
    task_log = logger.bind(task_id=self.request.id)
    task_log.info("Step backfill started")

    record = asyncio.run(_with_service(lambda service: service.backfill_missing_steps()))

    task_log.info("Step backfill finished", entities=record.entities_fixed, steps=record.steps_created)
    return {"status": "ok", **record.model_dump()}
