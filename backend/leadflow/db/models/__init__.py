"""
Models package — re-exports Base and all models.

Import models here so Alembic's `target_metadata = Base.metadata`
picks up every table automatically.

When adding a new model:
    1. Create `leadflow/db/models/<table_name>.py`
    2. Import it here
"""

from leadflow.db.models.base import Base
from leadflow.db.models.entity import PipelineEntity
from leadflow.db.models.step import PipelineStep
from leadflow.db.models.step_comment import StepComment
from leadflow.db.models.template import Template, TemplateStep

__all__ = [
    "Base",
    "PipelineEntity",
    "PipelineStep",
    "StepComment",
    "Template",
    "TemplateStep",
]
