"""
Pipeline entity repository — data access for Leads and VCs.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.core.config import settings
from leadflow.core.constants import EntityKind, EntityStatus
from leadflow.db.models.entity import PipelineEntity
from leadflow.db.models.step import PipelineStep


def format_display_code(kind: str, sequence_no: int) -> str:
    """'#0001' for leads, '#VC001' for VCs."""
    if kind == EntityKind.VC:
        return f"{settings.VC_CODE_PREFIX}{sequence_no:03d}"
    return f"{settings.LEAD_CODE_PREFIX}{sequence_no:04d}"


async def next_sequence_no(db: AsyncSession, kind: str) -> int:
    stmt = select(func.coalesce(func.max(PipelineEntity.sequence_no), 0)).where(PipelineEntity.kind == kind)
    result = await db.execute(stmt)
    return int(result.scalar_one()) + 1


async def create_entity(
    db: AsyncSession,
    *,
    kind: str,
    title: str,
    client_name: str | None = None,
    template_id: int | None = None,
    status: str = EntityStatus.IN_PROGRESS.value,
    notes: str | None = None,
) -> PipelineEntity:
    """Insert a Lead / VC with the next display code for its kind."""
    sequence_no = await next_sequence_no(db, kind)
    entity = PipelineEntity(
        kind=kind,
        sequence_no=sequence_no,
        display_code=format_display_code(kind, sequence_no),
        title=title.strip(),
        client_name=client_name,
        status=status,
        template_id=template_id,
        probability=0,
        notes=notes,
    )
    db.add(entity)
    await db.flush()
    return entity


async def get_entity(
    db: AsyncSession,
    entity_id: int,
    *,
    kind: str | None = None,
    for_update: bool = False,
) -> PipelineEntity | None:
    """Fetch an entity by primary key, optionally row-locked."""
    stmt = select(PipelineEntity).where(PipelineEntity.id == entity_id)
    if kind is not None:
        stmt = stmt.where(PipelineEntity.kind == kind)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_entities(
    db: AsyncSession,
    *,
    kind: str | None = None,
    status: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> list[PipelineEntity]:
    """List entities newest first, with optional kind/status filters."""
    stmt = select(PipelineEntity).order_by(PipelineEntity.created_at.desc(), PipelineEntity.id.desc())
    if kind is not None:
        stmt = stmt.where(PipelineEntity.kind == kind)
    if status is not None:
        stmt = stmt.where(PipelineEntity.status == status)
    stmt = stmt.offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_entity(
    db: AsyncSession,
    entity_id: int,
    **fields: object,
) -> PipelineEntity | None:
    """Update descriptive fields. Probability and template go through the workflow layer."""
    entity = await get_entity(db, entity_id)
    if entity is None:
        return None

    allowed = {"title", "client_name", "status", "notes"}
    for key, value in fields.items():
        if key not in allowed or value is None:
            continue
        setattr(entity, key, value)

    await db.flush()
    return entity


async def delete_entity(db: AsyncSession, entity_id: int) -> bool:
    """Hard-delete an entity; its steps and their comments cascade in the database."""
    result = await db.execute(delete(PipelineEntity).where(PipelineEntity.id == entity_id))
    await db.flush()
    return result.rowcount > 0


async def list_entity_ids_without_steps(db: AsyncSession) -> list[int]:
    """Entities that have no step instances at all."""
    has_steps = select(PipelineStep.id).where(PipelineStep.entity_id == PipelineEntity.id).exists()
    stmt = select(PipelineEntity.id).where(~has_steps).order_by(PipelineEntity.id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_by_status(db: AsyncSession, *, kind: str | None = None) -> dict[str, int]:
    """Entity counts grouped by status."""
    stmt = select(PipelineEntity.status, func.count(PipelineEntity.id)).group_by(PipelineEntity.status)
    if kind is not None:
        stmt = stmt.where(PipelineEntity.kind == kind)
    result = await db.execute(stmt)
    return {status: count for status, count in result.all()}
