"""initial workflow schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "onboarding_templates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_onboarding_templates")),
    )
    op.create_index(op.f("ix_onboarding_templates_name"), "onboarding_templates", ["name"])
    op.create_index(op.f("ix_onboarding_templates_is_active"), "onboarding_templates", ["is_active"])

    op.create_table(
        "template_steps",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("estimated_days", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("probability_percent", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["template_id"], ["onboarding_templates.id"],
            name=op.f("fk_template_steps_template_id_onboarding_templates"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_template_steps")),
        sa.UniqueConstraint("template_id", "step_order", name="uq_template_steps_template_order"),
    )
    op.create_index(op.f("ix_template_steps_template_id"), "template_steps", ["template_id"])

    op.create_table(
        "pipeline_entities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("kind", sa.String(length=10), nullable=False),
        sa.Column("display_code", sa.String(length=32), nullable=False),
        sa.Column("sequence_no", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="in-progress"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("template_id", sa.Integer(), nullable=True),
        sa.Column("probability", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('in-progress', 'won', 'lost', 'completed')",
            name=op.f("ck_pipeline_entities_status"),
        ),
        sa.CheckConstraint(
            "probability >= 0 AND probability <= 100",
            name=op.f("ck_pipeline_entities_probability_range"),
        ),
        sa.ForeignKeyConstraint(
            ["template_id"], ["onboarding_templates.id"],
            name=op.f("fk_pipeline_entities_template_id_onboarding_templates"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_pipeline_entities")),
        sa.UniqueConstraint("display_code", name=op.f("uq_pipeline_entities_display_code")),
        sa.UniqueConstraint("kind", "sequence_no", name="uq_pipeline_entities_kind_sequence"),
    )
    op.create_index(op.f("ix_pipeline_entities_kind"), "pipeline_entities", ["kind"])
    op.create_index(op.f("ix_pipeline_entities_status"), "pipeline_entities", ["status"])
    op.create_index(op.f("ix_pipeline_entities_template_id"), "pipeline_entities", ["template_id"])

    op.create_table(
        "pipeline_steps",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("probability_percent", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_days", sa.Integer(), nullable=True),
        sa.Column("assigned_to", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled')",
            name=op.f("ck_pipeline_steps_status"),
        ),
        sa.ForeignKeyConstraint(
            ["entity_id"], ["pipeline_entities.id"],
            name=op.f("fk_pipeline_steps_entity_id_pipeline_entities"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_pipeline_steps")),
        sa.UniqueConstraint("entity_id", "step_order", name="uq_pipeline_steps_entity_order"),
    )
    op.create_index(op.f("ix_pipeline_steps_entity_id"), "pipeline_steps", ["entity_id"])
    op.create_index(op.f("ix_pipeline_steps_status"), "pipeline_steps", ["status"])

    op.create_table(
        "step_comments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("step_id", sa.Integer(), nullable=False),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["step_id"], ["pipeline_steps.id"],
            name=op.f("fk_step_comments_step_id_pipeline_steps"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_step_comments")),
    )
    op.create_index(op.f("ix_step_comments_step_id"), "step_comments", ["step_id"])


def downgrade() -> None:
    op.drop_table("step_comments")
    op.drop_table("pipeline_steps")
    op.drop_table("pipeline_entities")
    op.drop_table("template_steps")
    op.drop_table("onboarding_templates")
