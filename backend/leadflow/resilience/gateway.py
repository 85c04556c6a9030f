"""
WorkflowGateway — the service boundary.

Brackets every workflow operation with the availability rules:

    1. probe the store (SELECT 1 with a timeout)
    2. run the database operation
    3. on schema drift: heal + retry once when SCHEMA_SELF_HEAL_ON_DRIFT is set
    4. if the store is unusable, apply the operation's policy:

        READ    serve the same shape from the FallbackStore
        ECHO    apply the write to the FallbackStore, persisted=False
        STRICT  raise StoreUnavailableError

Domain errors (not found, bad transition, bad reorder) are never
degraded; they propagate as-is.  A unique violation that survives the
service's own retries is a write conflict (409), not an outage.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from leadflow.core.config import Settings, settings
from leadflow.core.constants import DataSource
from leadflow.core.errors import ConflictError, StoreUnavailableError
from leadflow.core.logging import get_logger
from leadflow.db.schema import ensure_schema
from leadflow.db.session import build_sessionmaker
from leadflow.resilience.drift import classify_drift, is_unique_violation
from leadflow.resilience.fallback import FallbackStore
from leadflow.resilience.health import StoreHealth, check_store
from leadflow.workflow.records import OperationResult
from leadflow.workflow.service import WorkflowService
from leadflow.workflow.weights import weight_report

logger = get_logger(__name__)

T = TypeVar("T")

STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class Policy(StrEnum):
    READ = "read"
    ECHO = "echo"
    STRICT = "strict"


class WorkflowGateway:
    """Resilient entry point used by the API."""

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        fallback: FallbackStore | None = None,
        service: WorkflowService | None = None,
        config: Settings = settings,
    ) -> None:
        self.engine = engine
        self.service = service or WorkflowService(build_sessionmaker(engine))
        self.fallback = fallback if fallback is not None else FallbackStore()
        self.config = config

    # ─── Availability ─────────────────────────────────────
    async def store_health(self) -> StoreHealth:
        return await check_store(self.engine, timeout=self.config.DB_HEALTH_TIMEOUT_SECONDS)

    async def ensure_schema(self) -> list[str]:
        return await ensure_schema(self.engine)

    async def _execute(
        self,
        operation: str,
        policy: Policy,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], T] | None = None,
    ) -> OperationResult[T]:
        log = logger.bind(operation=operation, policy=policy.value)

        health = await self.store_health()
        if health.available:
            try:
                return OperationResult(data=await self._run_with_healing(log, primary))
            except StoreUnavailableError as exc:
                reason = exc.message
        else:
            reason = health.error or "store unavailable"

        return self._degrade(log, operation, policy, fallback, reason)

    async def _run_with_healing(self, log: Any, primary: Callable[[], Awaitable[T]]) -> T:
        try:
            return await primary()
        except STORE_ERRORS as exc:
            if is_unique_violation(exc):
                log.warning("Write conflict", error=str(exc))
                raise ConflictError("Write conflicts with a concurrent change", details={"error": str(exc)}) from exc
            drift = classify_drift(exc)
            if drift is None:
                log.warning("Store operation failed", error=str(exc))
                raise StoreUnavailableError("Store operation failed", details={"error": str(exc)}) from exc

        log.warning("Schema drift detected", signature=drift.signature, error=drift.details.get("error"))
        if not self.config.SCHEMA_SELF_HEAL_ON_DRIFT:
            raise StoreUnavailableError(
                "Schema drift detected and self-heal is disabled",
                details={"signature": drift.signature},
            ) from drift

        try:
            actions = await ensure_schema(self.engine, rebuild_checks=drift.signature == "stale_check")
            log.warning("Schema healed, retrying", signature=drift.signature, actions=actions)
            return await primary()
        except STORE_ERRORS as exc:
            log.error("Schema healing failed", signature=drift.signature, error=str(exc))
            raise StoreUnavailableError(
                "Schema drift persists after healing",
                details={"signature": drift.signature, "error": str(exc)},
            ) from exc

    def _degrade(
        self,
        log: Any,
        operation: str,
        policy: Policy,
        fallback: Callable[[], T] | None,
        reason: str,
    ) -> OperationResult[T]:
        if policy == Policy.STRICT or fallback is None or not self.config.FALLBACK_ENABLED:
            log.error("Store unavailable, operation rejected", reason=reason)
            raise StoreUnavailableError(
                f"Store unavailable; '{operation}' requires the database",
                details={"reason": reason},
            )

        data = fallback()
        if policy == Policy.READ:
            warning = "served from in-memory fallback data"
        else:
            warning = "change applied to in-memory fallback only and will not survive a restart"
        log.warning("Serving from fallback", reason=reason)
        return OperationResult(data=data, persisted=False, source=DataSource.FALLBACK, warnings=[warning])

    # ─── Entities ─────────────────────────────────────────
    async def create_entity(self, **fields: Any) -> OperationResult:
        return await self._execute(
            "create_entity",
            Policy.ECHO,
            lambda: self.service.create_entity(**fields),
            lambda: self.fallback.create_entity(**fields),
        )

    async def get_entity(self, entity_id: int, *, kind: str | None = None) -> OperationResult:
        return await self._execute(
            "get_entity",
            Policy.READ,
            lambda: self.service.get_entity(entity_id, kind=kind),
            lambda: self.fallback.get_entity(entity_id, kind=kind),
        )

    async def list_entities(self, **filters: Any) -> OperationResult:
        return await self._execute(
            "list_entities",
            Policy.READ,
            lambda: self.service.list_entities(**filters),
            lambda: self.fallback.list_entities(**filters),
        )

    async def update_entity(self, entity_id: int, *, kind: str | None = None, **fields: Any) -> OperationResult:
        return await self._execute(
            "update_entity",
            Policy.ECHO,
            lambda: self.service.update_entity(entity_id, kind=kind, **fields),
            lambda: self.fallback.update_entity(entity_id, kind=kind, **fields),
        )

    async def delete_entity(self, entity_id: int, *, kind: str | None = None) -> OperationResult:
        return await self._execute(
            "delete_entity",
            Policy.ECHO,
            lambda: self.service.delete_entity(entity_id, kind=kind),
            lambda: self.fallback.delete_entity(entity_id, kind=kind),
        )

    # ─── Steps ────────────────────────────────────────────
    async def get_steps(self, entity_id: int, *, kind: str | None = None) -> OperationResult:
        return await self._execute(
            "get_steps",
            Policy.READ,
            lambda: self.service.get_steps(entity_id, kind=kind),
            lambda: self.fallback.get_steps(entity_id, kind=kind),
        )

    async def create_step(self, entity_id: int, *, kind: str | None = None, **fields: Any) -> OperationResult:
        return await self._execute(
            "create_step",
            Policy.ECHO,
            lambda: self.service.create_step(entity_id, kind=kind, **fields),
            lambda: self.fallback.create_step(entity_id, kind=kind, **fields),
        )

    async def update_step(
        self,
        step_id: int,
        *,
        status: str | None = None,
        kind: str | None = None,
        **fields: Any,
    ) -> OperationResult:
        return await self._execute(
            "update_step",
            Policy.ECHO,
            lambda: self.service.update_step(step_id, status=status, kind=kind, **fields),
            lambda: self.fallback.update_step(step_id, status=status, kind=kind, **fields),
        )

    async def delete_step(self, step_id: int, *, kind: str | None = None) -> OperationResult:
        return await self._execute(
            "delete_step",
            Policy.ECHO,
            lambda: self.service.delete_step(step_id, kind=kind),
            lambda: self.fallback.delete_step(step_id, kind=kind),
        )

    async def reorder_steps(
        self,
        entity_id: int,
        moves: Iterable[tuple[int, int]],
        *,
        kind: str | None = None,
    ) -> OperationResult:
        moves = list(moves)
        return await self._execute(
            "reorder_steps",
            Policy.ECHO,
            lambda: self.service.reorder_steps(entity_id, moves, kind=kind),
            lambda: self.fallback.reorder_steps(entity_id, moves, kind=kind),
        )

    async def change_entity_template(
        self,
        entity_id: int,
        template_id: int | None,
        *,
        kind: str | None = None,
    ) -> OperationResult:
        return await self._execute(
            "change_entity_template",
            Policy.STRICT,
            lambda: self.service.change_entity_template(entity_id, template_id, kind=kind),
        )

    async def resync_weights(self, entity_id: int, *, kind: str | None = None) -> OperationResult:
        return await self._execute(
            "resync_weights",
            Policy.STRICT,
            lambda: self.service.resync_weights(entity_id, kind=kind),
        )

    async def backfill_missing_steps(self) -> OperationResult:
        return await self._execute("backfill_missing_steps", Policy.STRICT, self.service.backfill_missing_steps)

    # ─── Read models ──────────────────────────────────────
    async def progress_summary(self, entity_id: int, *, kind: str | None = None) -> OperationResult:
        return await self._execute(
            "progress_summary",
            Policy.READ,
            lambda: self.service.progress_summary(entity_id, kind=kind),
            lambda: self.fallback.progress_summary(entity_id, kind=kind),
        )

    async def entity_stats(self, *, kind: str | None = None) -> OperationResult:
        return await self._execute(
            "entity_stats",
            Policy.READ,
            lambda: self.service.entity_stats(kind=kind),
            lambda: self.fallback.entity_stats(kind=kind),
        )

    # ─── Templates ────────────────────────────────────────
    async def list_templates(self, *, include_inactive: bool = False) -> OperationResult:
        return await self._execute(
            "list_templates",
            Policy.READ,
            lambda: self.service.list_templates(include_inactive=include_inactive),
            lambda: self.fallback.list_templates(include_inactive=include_inactive),
        )

    async def get_template(self, template_id: int) -> OperationResult:
        return await self._execute(
            "get_template",
            Policy.READ,
            lambda: self.service.get_template(template_id),
            lambda: self.fallback.get_template(template_id),
        )

    async def template_weight_report(self, template_id: int | None = None) -> OperationResult:
        def from_fallback():
            if template_id is not None:
                return [weight_report(self.fallback.get_template(template_id))]
            return [weight_report(t) for t in self.fallback.list_templates(include_inactive=True)]

        return await self._execute(
            "template_weight_report",
            Policy.READ,
            lambda: self.service.template_weight_report(template_id),
            from_fallback,
        )

    async def create_template(self, **fields: Any) -> OperationResult:
        return await self._execute("create_template", Policy.STRICT, lambda: self.service.create_template(**fields))

    async def update_template(self, template_id: int, **fields: Any) -> OperationResult:
        return await self._execute(
            "update_template",
            Policy.STRICT,
            lambda: self.service.update_template(template_id, **fields),
        )

    async def deactivate_template(self, template_id: int) -> OperationResult:
        return await self._execute(
            "deactivate_template",
            Policy.STRICT,
            lambda: self.service.deactivate_template(template_id),
        )

    async def duplicate_template(self, template_id: int) -> OperationResult:
        return await self._execute(
            "duplicate_template",
            Policy.STRICT,
            lambda: self.service.duplicate_template(template_id),
        )
