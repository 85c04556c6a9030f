"""
PipelineEntity — one Lead or VC progressing through a workflow.

`probability` is derived from completed step weights and is only written
by the probability aggregator, never by ordinary entity updates.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.db.models.base import Base, utcnow


class PipelineEntity(Base):
    __tablename__ = "pipeline_entities"
    __table_args__ = (
        UniqueConstraint("kind", "sequence_no", name="uq_pipeline_entities_kind_sequence"),
        CheckConstraint(
            "status IN ('in-progress', 'won', 'lost', 'completed')",
            name="status",
        ),
        CheckConstraint("probability >= 0 AND probability <= 100", name="probability_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # lead | vc

    # Human-readable code: "#0001" for leads, "#VC001" for VCs
    display_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    sequence_no: Mapped[int] = mapped_column(Integer, nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="in-progress", index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    template_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("onboarding_templates.id", ondelete="SET NULL"), nullable=True, index=True
    )
    probability: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    steps = relationship(
        "PipelineStep",
        back_populates="entity",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PipelineStep.step_order",
    )

    def __repr__(self) -> str:
        return f"<PipelineEntity id={self.id} {self.kind} {self.display_code} probability={self.probability}>"
