"""
Template + TemplateStep — reusable, ordered, weighted step blueprints.

A Template is never hard-deleted while entities may reference it; it is
soft-deactivated via `is_active`.  TemplateStep weights
(`probability_percent`) are not required to total 100.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from leadflow.core.constants import DEFAULT_TEMPLATE_STEP_DAYS
from leadflow.db.models.base import Base, utcnow


class Template(Base):
    """One reusable workflow blueprint."""

    __tablename__ = "onboarding_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    usage_count = Column(Integer, nullable=False, default=0)

    # ── Audit timestamps ─────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # ── Relationships ─────────────────────────
    steps = relationship(
        "TemplateStep",
        back_populates="template",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TemplateStep.step_order",
    )

    def __repr__(self) -> str:
        return f"<Template {self.id} {self.name!r} active={self.is_active}>"


class TemplateStep(Base):
    """One blueprint step inside a Template."""

    __tablename__ = "template_steps"
    __table_args__ = (
        UniqueConstraint("template_id", "step_order", name="uq_template_steps_template_order"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    template_id = Column(Integer, ForeignKey("onboarding_templates.id", ondelete="CASCADE"), nullable=False, index=True)

    # ── Identity (name + order is the soft join key to step instances) ──
    step_order = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    estimated_days = Column(Integer, nullable=False, default=DEFAULT_TEMPLATE_STEP_DAYS)
    # Nullable: legacy templates predate weights
    probability_percent = Column(Integer, nullable=True, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    template = relationship("Template", back_populates="steps")

    def __repr__(self) -> str:
        return f"<TemplateStep {self.id} template={self.template_id} order={self.step_order} {self.name!r}>"
