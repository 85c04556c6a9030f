"""
WorkflowService — transactional facade over the workflow modules.

Each public method opens one session and one transaction, runs the
workflow functions (which only flush), and returns plain records.  No
fallback or drift handling here; that is the gateway's job.  Entity
creation is the one retry: display codes come from max(sequence_no) + 1,
so a concurrent create that took the same code is retried in a fresh
transaction.  Celery tasks and manage.py use this class directly.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadflow.core.constants import CREATE_ENTITY_ATTEMPTS, MAX_PROBABILITY, EntityStatus
from leadflow.core.errors import NotFoundError
from leadflow.core.logging import get_logger
from leadflow.db.models.entity import PipelineEntity
from leadflow.repositories import entities as entity_repository
from leadflow.repositories import steps as step_repository
from leadflow.repositories import templates as template_repository
from leadflow.resilience.drift import is_unique_violation
from leadflow.workflow import instantiation, lifecycle, progress, reorder, weights
from leadflow.workflow.matching import DEFAULT_MATCHER, StepMatcher
from leadflow.workflow.records import (
    BackfillRecord,
    EntityRecord,
    ProgressRecord,
    ReorderRecord,
    StatsRecord,
    StepDeletionRecord,
    StepRecord,
    StepUpdateRecord,
    TemplateChangeRecord,
    TemplateRecord,
    TemplateWeightReport,
    WeightResyncRecord,
)

logger = get_logger(__name__)


class WorkflowService:
    """Database-backed implementation of every workflow operation."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        matcher: StepMatcher = DEFAULT_MATCHER,
    ) -> None:
        self._session_factory = session_factory
        self.matcher = matcher

    async def _require_entity(
        self, db: AsyncSession, entity_id: int, kind: str | None
    ) -> PipelineEntity:
        entity = await entity_repository.get_entity(db, entity_id, kind=kind)
        if entity is None:
            raise NotFoundError("Entity not found", entity_id=entity_id, details={"kind": kind} if kind else None)
        return entity

    async def _require_step_of_kind(self, db: AsyncSession, step_id: int, kind: str | None) -> None:
        if kind is None:
            return
        step = await step_repository.get_step(db, step_id)
        if step is None:
            raise NotFoundError("Step not found", step_id=step_id)
        await self._require_entity(db, step.entity_id, kind)

    # ─── Entities ─────────────────────────────────────────
    async def create_entity(
        self,
        *,
        kind: str,
        title: str,
        client_name: str | None = None,
        template_id: int | None = None,
        status: str = EntityStatus.IN_PROGRESS.value,
        notes: str | None = None,
    ) -> EntityRecord:
        """Create a Lead / VC and instantiate its steps in one transaction."""
        for attempt in range(1, CREATE_ENTITY_ATTEMPTS + 1):
            try:
                return await self._insert_entity(
                    kind=kind,
                    title=title,
                    client_name=client_name,
                    template_id=template_id,
                    status=status,
                    notes=notes,
                )
            except IntegrityError as exc:
                if attempt == CREATE_ENTITY_ATTEMPTS or not is_unique_violation(exc):
                    raise
                logger.warning("Display code taken by a concurrent create, retrying", kind=kind, attempt=attempt)

    async def _insert_entity(self, *, kind: str, template_id: int | None, **fields: Any) -> EntityRecord:
        async with self._session_factory() as db, db.begin():
            if template_id is not None and await template_repository.get_template(db, template_id) is None:
                logger.warning("Unknown template on create, using default steps", template_id=template_id)
                template_id = None

            entity = await entity_repository.create_entity(db, kind=kind, template_id=template_id, **fields)
            await instantiation.instantiate_steps(db, entity.id, template_id)
            logger.info("Entity created", entity_id=entity.id, kind=kind, code=entity.display_code)
            return EntityRecord.model_validate(entity)

    async def get_entity(self, entity_id: int, *, kind: str | None = None) -> EntityRecord:
        async with self._session_factory() as db:
            return EntityRecord.model_validate(await self._require_entity(db, entity_id, kind))

    async def list_entities(
        self,
        *,
        kind: str | None = None,
        status: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[EntityRecord]:
        async with self._session_factory() as db:
            rows = await entity_repository.list_entities(db, kind=kind, status=status, offset=offset, limit=limit)
            return [EntityRecord.model_validate(r) for r in rows]

    async def update_entity(self, entity_id: int, *, kind: str | None = None, **fields: Any) -> EntityRecord:
        async with self._session_factory() as db, db.begin():
            await self._require_entity(db, entity_id, kind)
            entity = await entity_repository.update_entity(db, entity_id, **fields)
            logger.info("Entity updated", entity_id=entity_id, fields=sorted(fields))
            return EntityRecord.model_validate(entity)

    async def delete_entity(self, entity_id: int, *, kind: str | None = None) -> bool:
        async with self._session_factory() as db, db.begin():
            await self._require_entity(db, entity_id, kind)
            deleted = await entity_repository.delete_entity(db, entity_id)
            logger.info("Entity deleted", entity_id=entity_id)
            return deleted

    # ─── Steps ────────────────────────────────────────────
    async def get_steps(self, entity_id: int, *, kind: str | None = None) -> list[StepRecord]:
        """Ordered steps; an entity without steps gets its steps instantiated first."""
        async with self._session_factory() as db, db.begin():
            entity = await self._require_entity(db, entity_id, kind)
            steps = await instantiation.instantiate_steps(db, entity_id, entity.template_id)
            return [StepRecord.model_validate(s) for s in steps]

    async def create_step(self, entity_id: int, *, kind: str | None = None, **fields: Any) -> StepRecord:
        async with self._session_factory() as db, db.begin():
            await self._require_entity(db, entity_id, kind)
            step = await lifecycle.create_step(db, entity_id, **fields)
            return StepRecord.model_validate(step)

    async def update_step(
        self,
        step_id: int,
        *,
        status: str | None = None,
        kind: str | None = None,
        **fields: Any,
    ) -> StepUpdateRecord:
        async with self._session_factory() as db, db.begin():
            await self._require_step_of_kind(db, step_id, kind)
            step, probability = await lifecycle.update_step(db, step_id, status=status, **fields)
            return StepUpdateRecord(
                step=StepRecord.model_validate(step),
                entity_id=step.entity_id,
                probability=probability,
            )

    async def delete_step(self, step_id: int, *, kind: str | None = None) -> StepDeletionRecord:
        async with self._session_factory() as db, db.begin():
            await self._require_step_of_kind(db, step_id, kind)
            entity_id, probability = await lifecycle.delete_step(db, step_id)
            return StepDeletionRecord(step_id=step_id, entity_id=entity_id, probability=probability)

    async def reorder_steps(
        self,
        entity_id: int,
        moves: Iterable[tuple[int, int]],
        *,
        kind: str | None = None,
    ) -> ReorderRecord:
        async with self._session_factory() as db, db.begin():
            await self._require_entity(db, entity_id, kind)
            return await reorder.reorder_steps(db, entity_id, list(moves), matcher=self.matcher)

    async def change_entity_template(
        self,
        entity_id: int,
        template_id: int | None,
        *,
        kind: str | None = None,
    ) -> TemplateChangeRecord:
        async with self._session_factory() as db, db.begin():
            await self._require_entity(db, entity_id, kind)
            entity, steps, removed = await instantiation.change_entity_template(db, entity_id, template_id)
            return TemplateChangeRecord(
                entity=EntityRecord.model_validate(entity),
                steps=[StepRecord.model_validate(s) for s in steps],
                removed_steps=removed,
            )

    async def resync_weights(self, entity_id: int, *, kind: str | None = None) -> WeightResyncRecord:
        async with self._session_factory() as db, db.begin():
            await self._require_entity(db, entity_id, kind)
            return await weights.resync_weights(db, entity_id, matcher=self.matcher)

    async def backfill_missing_steps(self) -> BackfillRecord:
        async with self._session_factory() as db, db.begin():
            return await instantiation.backfill_missing_steps(db)

    async def progress_summary(self, entity_id: int, *, kind: str | None = None) -> ProgressRecord:
        async with self._session_factory() as db:
            await self._require_entity(db, entity_id, kind)
            return await progress.progress_summary(db, entity_id)

    async def entity_stats(self, *, kind: str | None = None) -> StatsRecord:
        async with self._session_factory() as db:
            return await progress.entity_stats(db, kind=kind)

    # ─── Templates ────────────────────────────────────────
    async def list_templates(self, *, include_inactive: bool = False) -> list[TemplateRecord]:
        async with self._session_factory() as db:
            rows = await template_repository.list_templates(db, include_inactive=include_inactive)
            return [TemplateRecord.model_validate(t) for t in rows]

    async def get_template(self, template_id: int) -> TemplateRecord:
        async with self._session_factory() as db:
            template = await template_repository.get_template(db, template_id)
            if template is None:
                raise NotFoundError("Template not found", details={"template_id": template_id})
            return TemplateRecord.model_validate(template)

    async def create_template(
        self,
        *,
        name: str,
        description: str | None = None,
        steps: list[dict[str, Any]] | None = None,
    ) -> TemplateRecord:
        steps = steps or []
        async with self._session_factory() as db, db.begin():
            template = await template_repository.create_template(db, name=name, description=description, steps=steps)
            self._warn_on_unbalanced(template.id, steps)
            logger.info("Template created", template_id=template.id, steps=len(steps))
            return TemplateRecord.model_validate(template)

    async def update_template(
        self,
        template_id: int,
        *,
        steps: list[dict[str, Any]] | None = None,
        **fields: Any,
    ) -> TemplateRecord:
        async with self._session_factory() as db, db.begin():
            template = await template_repository.update_template(db, template_id, steps=steps, **fields)
            if template is None:
                raise NotFoundError("Template not found", details={"template_id": template_id})
            if steps is not None:
                self._warn_on_unbalanced(template_id, steps)
            logger.info("Template updated", template_id=template_id, replaced_steps=steps is not None)
            return TemplateRecord.model_validate(template)

    async def deactivate_template(self, template_id: int) -> TemplateRecord:
        """Soft delete: the template stays referenced by existing entities."""
        async with self._session_factory() as db, db.begin():
            template = await template_repository.update_template(db, template_id, is_active=False)
            if template is None:
                raise NotFoundError("Template not found", details={"template_id": template_id})
            logger.info("Template deactivated", template_id=template_id)
            return TemplateRecord.model_validate(template)

    async def duplicate_template(self, template_id: int) -> TemplateRecord:
        async with self._session_factory() as db, db.begin():
            source = await template_repository.get_template(db, template_id)
            if source is None:
                raise NotFoundError("Template not found", details={"template_id": template_id})
            copy = await template_repository.create_template(
                db,
                name=f"{source.name} (Copy)",
                description=source.description,
                steps=[
                    {
                        "name": ts.name,
                        "description": ts.description,
                        "step_order": ts.step_order,
                        "estimated_days": ts.estimated_days,
                        "probability_percent": ts.probability_percent,
                    }
                    for ts in source.steps
                ],
            )
            logger.info("Template duplicated", template_id=template_id, copy_id=copy.id)
            return TemplateRecord.model_validate(copy)

    async def template_weight_report(self, template_id: int | None = None) -> list[TemplateWeightReport]:
        async with self._session_factory() as db:
            return await weights.template_weight_report(db, template_id)

    @staticmethod
    def _warn_on_unbalanced(template_id: int, steps: list[dict[str, Any]]) -> None:
        total = weights.total_weight(steps)
        if steps and total != MAX_PROBABILITY:
            logger.warning("Template weights do not total 100", template_id=template_id, total_weight=total)
