"""
Template repository — data access for onboarding_templates / template_steps.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leadflow.core.constants import DEFAULT_TEMPLATE_STEP_DAYS
from leadflow.db.models.template import Template, TemplateStep


def _build_steps(template_id: int, steps: Iterable[dict[str, Any]]) -> list[TemplateStep]:
    rows = []
    for index, spec in enumerate(steps, start=1):
        rows.append(
            TemplateStep(
                template_id=template_id,
                step_order=spec.get("step_order") or index,
                name=spec["name"].strip(),
                description=spec.get("description"),
                estimated_days=spec.get("estimated_days") or DEFAULT_TEMPLATE_STEP_DAYS,
                probability_percent=spec.get("probability_percent"),
            )
        )
    return rows


async def create_template(
    db: AsyncSession,
    *,
    name: str,
    description: str | None = None,
    steps: Iterable[dict[str, Any]] = (),
) -> Template:
    """Create a template and its ordered steps."""
    template = Template(name=name.strip(), description=description, is_active=True, usage_count=0)
    db.add(template)
    await db.flush()

    db.add_all(_build_steps(template.id, steps))
    await db.flush()
    await db.refresh(template, attribute_names=["steps"])
    return template


async def get_template(
    db: AsyncSession,
    template_id: int,
    *,
    active_only: bool = False,
) -> Template | None:
    """Fetch a template with its steps eagerly loaded."""
    stmt = select(Template).where(Template.id == template_id).options(selectinload(Template.steps))
    if active_only:
        stmt = stmt.where(Template.is_active.is_(True))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_template_steps(db: AsyncSession, template_id: int) -> list[TemplateStep]:
    """Ordered steps of one template."""
    stmt = (
        select(TemplateStep)
        .where(TemplateStep.template_id == template_id)
        .order_by(TemplateStep.step_order)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_templates(
    db: AsyncSession,
    *,
    include_inactive: bool = False,
) -> list[Template]:
    """List templates (active only by default), newest first."""
    stmt = select(Template).options(selectinload(Template.steps)).order_by(Template.created_at.desc(), Template.id.desc())
    if not include_inactive:
        stmt = stmt.where(Template.is_active.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_template(
    db: AsyncSession,
    template_id: int,
    *,
    steps: Iterable[dict[str, Any]] | None = None,
    **fields: object,
) -> Template | None:
    """Update mutable template fields; when `steps` is given the step list is replaced."""
    template = await get_template(db, template_id)
    if template is None:
        return None

    allowed = {"name", "description", "is_active"}
    for key, value in fields.items():
        if key not in allowed or value is None:
            continue
        if key == "name" and isinstance(value, str):
            value = value.strip()
        setattr(template, key, value)

    if steps is not None:
        await db.execute(delete(TemplateStep).where(TemplateStep.template_id == template_id))
        db.add_all(_build_steps(template_id, steps))

    await db.flush()
    await db.refresh(template, attribute_names=["steps"])
    return template


async def increment_usage(db: AsyncSession, template_id: int) -> None:
    """Record one more application of the template."""
    stmt = (
        update(Template)
        .where(Template.id == template_id)
        .values(usage_count=Template.usage_count + 1)
    )
    await db.execute(stmt)
    await db.flush()


async def get_template_by_name(db: AsyncSession, name: str) -> Template | None:
    """Fetch the first template with this exact (trimmed) name."""
    stmt = select(Template).where(Template.name == name.strip()).order_by(Template.id).limit(1)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
