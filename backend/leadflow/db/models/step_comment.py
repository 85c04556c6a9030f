"""
StepComment — soft reference from the comment subsystem to a step.

Deleting a step cascades to its comments at the database level.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from leadflow.db.models.base import Base, utcnow


class StepComment(Base):
    __tablename__ = "step_comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    step_id = Column(Integer, ForeignKey("pipeline_steps.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<StepComment {self.id} step={self.step_id} by {self.author}>"
