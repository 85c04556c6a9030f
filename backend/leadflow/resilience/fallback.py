"""
FallbackStore — in-memory stand-in for the database.

Serves reads and accepts non-durable writes while the store is down.
Honors the same contracts as the database path (transition rules,
probability roll-up, reorder validation, default steps) by reusing the
workflow module's pure functions.  Template sync, weight re-sync and
template CRUD are not offered here; the gateway rejects them instead.

Ids the fallback allocates itself count down from -1 so they never
shadow store rows.  A positive id it has not seen belongs to the store,
so the first access creates a stand-in entity under that id with the
default steps.

One instance lives for the whole process (on `app.state`); tests build
their own.  All access is serialized with an RLock.
"""

from __future__ import annotations

import threading
from typing import Any, Iterable

from leadflow.core.config import settings
from leadflow.core.constants import EntityKind, EntityStatus, StepStatus
from leadflow.core.errors import InvalidReorderError, NotFoundError
from leadflow.core.logging import get_logger
from leadflow.db.models.base import utcnow
from leadflow.resilience import fixtures
from leadflow.workflow.instantiation import default_step_specs, template_step_specs
from leadflow.workflow.lifecycle import apply_step_changes
from leadflow.workflow.probability import probability_from_steps
from leadflow.workflow.progress import build_progress, build_stats
from leadflow.workflow.records import (
    EntityRecord,
    ProgressRecord,
    ReorderRecord,
    StatsRecord,
    StepDeletionRecord,
    StepRecord,
    StepUpdateRecord,
    TemplateRecord,
    TemplateStepRecord,
)
from leadflow.workflow.reorder import validate_moves

logger = get_logger(__name__)

ENTITY_FIELDS = frozenset({"title", "client_name", "status", "notes"})


class FallbackStore:
    """Process-lifetime in-memory data for degraded operation."""

    def __init__(self, *, seed: bool = True) -> None:
        self._lock = threading.RLock()
        self._counters: dict[str, int] = {"template": 0, "template_step": 0, "entity": 0, "step": 0}
        self._sequences: dict[str, int] = {EntityKind.LEAD: 0, EntityKind.VC: 0}
        self._templates: dict[int, TemplateRecord] = {}
        self._entities: dict[int, EntityRecord] = {}
        self._steps: dict[int, StepRecord] = {}
        if seed:
            self._seed()

    # ─── Internals ────────────────────────────────────────
    def _next_id(self, table: str) -> int:
        with self._lock:
            self._counters[table] += 1
            return -self._counters[table]

    def _display_code(self, kind: str) -> str:
        self._sequences[kind] += 1
        seq = self._sequences[kind]
        if kind == EntityKind.VC:
            return f"{settings.VC_CODE_PREFIX}{seq:03d}"
        return f"{settings.LEAD_CODE_PREFIX}{seq:04d}"

    def _seed(self) -> None:
        template_ids = []
        for spec in fixtures.TEMPLATES:
            template_ids.append(self._add_template(spec["name"], spec["description"], spec["steps"]).id)

        for spec in fixtures.ENTITIES:
            index = spec["template_index"]
            entity = self.create_entity(
                kind=spec["kind"],
                title=spec["title"],
                client_name=spec["client_name"],
                status=spec["status"],
                template_id=template_ids[index] if index is not None else None,
            )
            for step in self._entity_steps(entity.id)[: spec["completed_steps"]]:
                apply_step_changes(step, status=StepStatus.COMPLETED.value)
            self._refresh_probability(entity.id)

        logger.debug("Fallback store seeded", templates=len(self._templates), entities=len(self._entities))

    def _add_template(self, name: str, description: str | None, steps: Iterable[dict[str, Any]]) -> TemplateRecord:
        now = utcnow()
        template_id = self._next_id("template")
        template = TemplateRecord(
            id=template_id,
            name=name,
            description=description,
            is_active=True,
            usage_count=0,
            created_at=now,
            updated_at=now,
            steps=[
                TemplateStepRecord(
                    id=self._next_id("template_step"),
                    template_id=template_id,
                    step_order=order,
                    name=step["name"],
                    description=step.get("description"),
                    estimated_days=step.get("estimated_days"),
                    probability_percent=step.get("probability_percent"),
                )
                for order, step in enumerate(steps, start=1)
            ],
        )
        self._templates[template_id] = template
        return template

    def _entity(self, entity_id: int, kind: str | None) -> EntityRecord:
        entity = self._entities.get(entity_id)
        if entity is None or (kind is not None and entity.kind != kind):
            raise NotFoundError("Entity not found", entity_id=entity_id)
        return entity

    def _resolve(self, entity_id: int, kind: str | None) -> EntityRecord:
        if entity_id > 0 and entity_id not in self._entities:
            self._stand_in(entity_id, kind or EntityKind.LEAD.value)
        return self._entity(entity_id, kind)

    def _stand_in(self, entity_id: int, kind: str) -> EntityRecord:
        now = utcnow()
        if kind == EntityKind.VC:
            code = f"{settings.VC_CODE_PREFIX}{entity_id:03d}"
        else:
            code = f"{settings.LEAD_CODE_PREFIX}{entity_id:04d}"
        entity = EntityRecord(
            id=entity_id,
            kind=kind,
            display_code=code,
            title=f"{kind.upper()} {entity_id}",
            status=EntityStatus.IN_PROGRESS.value,
            probability=0,
            notes="Stand-in while the store is unavailable",
            created_at=now,
            updated_at=now,
        )
        self._entities[entity_id] = entity
        self._instantiate(entity_id, None)
        logger.warning("Serving stand-in entity", entity_id=entity_id, kind=kind)
        return entity

    def _step(self, step_id: int, kind: str | None) -> StepRecord:
        step = self._steps.get(step_id)
        if step is None:
            raise NotFoundError("Step not found", step_id=step_id)
        if kind is not None:
            self._entity(step.entity_id, kind)
        return step

    def _entity_steps(self, entity_id: int) -> list[StepRecord]:
        return sorted((s for s in self._steps.values() if s.entity_id == entity_id), key=lambda s: s.step_order)

    def _refresh_probability(self, entity_id: int) -> int:
        entity = self._entities[entity_id]
        entity.probability = probability_from_steps(self._entity_steps(entity_id))
        entity.updated_at = utcnow()
        return entity.probability

    def _instantiate(self, entity_id: int, template_id: int | None) -> list[StepRecord]:
        existing = self._entity_steps(entity_id)
        if existing:
            return existing

        template = self._templates.get(template_id) if template_id is not None else None
        if template is not None and template.is_active and template.steps:
            specs = template_step_specs(template.steps)
            template.usage_count += 1
        else:
            specs = default_step_specs()

        now = utcnow()
        for spec in specs:
            step = StepRecord(id=self._next_id("step"), entity_id=entity_id, created_at=now, updated_at=now, **spec)
            self._steps[step.id] = step
        return self._entity_steps(entity_id)

    @staticmethod
    def _copy(record):
        return record.model_copy(deep=True)

    # ─── Entities ─────────────────────────────────────────
    def create_entity(
        self,
        *,
        kind: str,
        title: str,
        client_name: str | None = None,
        template_id: int | None = None,
        status: str = EntityStatus.IN_PROGRESS.value,
        notes: str | None = None,
    ) -> EntityRecord:
        with self._lock:
            if template_id is not None and template_id not in self._templates:
                template_id = None
            now = utcnow()
            entity = EntityRecord(
                id=self._next_id("entity"),
                kind=kind,
                display_code=self._display_code(kind),
                title=title.strip(),
                client_name=client_name,
                status=status,
                template_id=template_id,
                probability=0,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            self._entities[entity.id] = entity
            self._instantiate(entity.id, template_id)
            return self._copy(entity)

    def get_entity(self, entity_id: int, *, kind: str | None = None) -> EntityRecord:
        with self._lock:
            return self._copy(self._resolve(entity_id, kind))

    def list_entities(
        self,
        *,
        kind: str | None = None,
        status: str | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> list[EntityRecord]:
        with self._lock:
            rows = [
                e for e in self._entities.values()
                if (kind is None or e.kind == kind) and (status is None or e.status == status)
            ]
            rows.sort(key=lambda e: (e.created_at, abs(e.id)), reverse=True)
            return [self._copy(e) for e in rows[offset : offset + limit]]

    def update_entity(self, entity_id: int, *, kind: str | None = None, **fields: Any) -> EntityRecord:
        with self._lock:
            entity = self._resolve(entity_id, kind)
            for key, value in fields.items():
                if key in ENTITY_FIELDS and value is not None:
                    setattr(entity, key, value)
            entity.updated_at = utcnow()
            return self._copy(entity)

    def delete_entity(self, entity_id: int, *, kind: str | None = None) -> bool:
        with self._lock:
            self._resolve(entity_id, kind)
            for step in self._entity_steps(entity_id):
                del self._steps[step.id]
            del self._entities[entity_id]
            return True

    # ─── Steps ────────────────────────────────────────────
    def get_steps(self, entity_id: int, *, kind: str | None = None) -> list[StepRecord]:
        with self._lock:
            entity = self._resolve(entity_id, kind)
            return [self._copy(s) for s in self._instantiate(entity_id, entity.template_id)]

    def create_step(
        self,
        entity_id: int,
        *,
        kind: str | None = None,
        name: str,
        description: str | None = None,
        step_order: int | None = None,
        probability_percent: int | None = 0,
        due_date=None,
        estimated_days: int | None = None,
        assigned_to: str | None = None,
    ) -> StepRecord:
        with self._lock:
            self._resolve(entity_id, kind)
            orders = [s.step_order for s in self._entity_steps(entity_id)]
            if step_order is None:
                step_order = max(orders, default=0) + 1
            elif step_order < 1 or step_order in orders:
                raise InvalidReorderError(
                    "Step order must be positive and unused",
                    entity_id=entity_id,
                    details={"order": step_order},
                )
            now = utcnow()
            step = StepRecord(
                id=self._next_id("step"),
                entity_id=entity_id,
                name=name.strip(),
                description=description,
                status=StepStatus.PENDING.value,
                step_order=step_order,
                probability_percent=probability_percent,
                due_date=due_date,
                estimated_days=estimated_days,
                assigned_to=assigned_to,
                created_at=now,
                updated_at=now,
            )
            self._steps[step.id] = step
            return self._copy(step)

    def update_step(
        self,
        step_id: int,
        *,
        status: str | None = None,
        kind: str | None = None,
        **fields: Any,
    ) -> StepUpdateRecord:
        with self._lock:
            step = self._step(step_id, kind)
            apply_step_changes(step, status=status, fields=fields)
            step.updated_at = utcnow()
            probability = self._refresh_probability(step.entity_id)
            return StepUpdateRecord(step=self._copy(step), entity_id=step.entity_id, probability=probability)

    def delete_step(self, step_id: int, *, kind: str | None = None) -> StepDeletionRecord:
        with self._lock:
            step = self._step(step_id, kind)
            del self._steps[step_id]
            probability = self._refresh_probability(step.entity_id)
            return StepDeletionRecord(step_id=step_id, entity_id=step.entity_id, probability=probability)

    def reorder_steps(
        self,
        entity_id: int,
        moves: Iterable[tuple[int, int]],
        *,
        kind: str | None = None,
    ) -> ReorderRecord:
        with self._lock:
            entity = self._resolve(entity_id, kind)
            steps = self._entity_steps(entity_id)
            changes = validate_moves({s.id: s.step_order for s in steps}, moves, entity_id=entity_id)
            for step_id, order in changes.items():
                self._steps[step_id].step_order = order
            return ReorderRecord(
                steps=[self._copy(s) for s in self._entity_steps(entity_id)],
                template_id=entity.template_id,
                template_synced=False,
            )

    # ─── Read models ──────────────────────────────────────
    def progress_summary(self, entity_id: int, *, kind: str | None = None) -> ProgressRecord:
        with self._lock:
            self._resolve(entity_id, kind)
            return build_progress(entity_id, self._entity_steps(entity_id))

    def entity_stats(self, *, kind: str | None = None) -> StatsRecord:
        with self._lock:
            counts: dict[str, int] = {}
            for entity in self._entities.values():
                if kind is None or entity.kind == kind:
                    counts[entity.status] = counts.get(entity.status, 0) + 1
            return build_stats(counts, kind=kind)

    def list_templates(self, *, include_inactive: bool = False) -> list[TemplateRecord]:
        with self._lock:
            rows = [t for t in self._templates.values() if include_inactive or t.is_active]
            # newest first; fallback ids count down
            return [self._copy(t) for t in sorted(rows, key=lambda t: t.id)]

    def get_template(self, template_id: int) -> TemplateRecord:
        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                raise NotFoundError("Template not found", details={"template_id": template_id})
            return self._copy(template)
