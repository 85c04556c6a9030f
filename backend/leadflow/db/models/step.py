"""
PipelineStep — one concrete, per-entity step instance.

Linked to its owning PipelineEntity via entity_id FK (ON DELETE CASCADE).
The link to the originating TemplateStep is soft: (order, normalized name),
never a foreign key.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from leadflow.db.models.base import Base, utcnow


class PipelineStep(Base):
    """One step instance within a Lead / VC workflow."""

    __tablename__ = "pipeline_steps"
    __table_args__ = (
        UniqueConstraint("entity_id", "step_order", name="uq_pipeline_steps_entity_order"),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled')",
            name="status",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(Integer, ForeignKey("pipeline_entities.id", ondelete="CASCADE"), nullable=False, index=True)

    # ── Step identity ─────────────────────────
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    step_order = Column(Integer, nullable=False)

    # ── Status ────────────────────────────────
    status = Column(String(20), nullable=False, default="pending", index=True)

    # ── Weight (percent contribution to entity probability) ──
    probability_percent = Column(Integer, nullable=True, default=0)

    # ── Scheduling ────────────────────────────
    due_date = Column(Date, nullable=True)
    completed_date = Column(DateTime(timezone=True), nullable=True)
    estimated_days = Column(Integer, nullable=True)
    assigned_to = Column(String(255), nullable=True)

    # ── Audit timestamps ─────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # ── Relationship ──────────────────────────
    entity = relationship("PipelineEntity", back_populates="steps")

    def __repr__(self) -> str:
        return f"<PipelineStep {self.id} entity={self.entity_id} order={self.step_order} status={self.status}>"
