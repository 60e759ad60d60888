"""Task templates, recurrence patterns, recurring schedules and tasks.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "task_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("firm_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("subtasks", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("is_payable", sa.Boolean(), nullable=False),
        sa.Column("payable_config", sa.JSON(), nullable=True),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_task_templates_firm_id", "task_templates", ["firm_id"])

    op.create_table(
        "recurrence_patterns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("firm_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("rule", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("firm_id", "name", name="uq_recurrence_patterns_firm_name"),
    )
    op.create_index("ix_recurrence_patterns_firm_id", "recurrence_patterns", ["firm_id"])

    op.create_table(
        "recurring_task_schedules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("firm_id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=True),
        sa.Column("assigned_to", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("pattern_id", sa.Integer(), nullable=True),
        sa.Column("rule", sa.JSON(), nullable=False),
        sa.Column("last_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_generation_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("occurrence_count", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("deactivation_reason", sa.String(length=32), nullable=True),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["task_templates.id"]),
        sa.ForeignKeyConstraint(["pattern_id"], ["recurrence_patterns.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_recurring_task_schedules_firm_id", "recurring_task_schedules", ["firm_id"])
    op.create_index(
        "ix_recurring_task_schedules_due",
        "recurring_task_schedules",
        ["is_active", "next_generation_date"],
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("firm_id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=True),
        sa.Column("schedule_id", sa.Integer(), nullable=True),
        sa.Column("client_id", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("subtasks", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("is_payable", sa.Boolean(), nullable=False),
        sa.Column("payable_config", sa.JSON(), nullable=True),
        sa.Column("assigned_to", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("recurrence_pattern_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["task_templates.id"]),
        sa.ForeignKeyConstraint(["schedule_id"], ["recurring_task_schedules.id"]),
        sa.ForeignKeyConstraint(["recurrence_pattern_id"], ["recurrence_patterns.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("schedule_id", "due_date", name="uq_tasks_schedule_due_date"),
    )
    op.create_index("ix_tasks_firm_id", "tasks", ["firm_id"])
    op.create_index("ix_tasks_schedule_id", "tasks", ["schedule_id"])


def downgrade() -> None:
    op.drop_index("ix_tasks_schedule_id", table_name="tasks")
    op.drop_index("ix_tasks_firm_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("ix_recurring_task_schedules_due", table_name="recurring_task_schedules")
    op.drop_index("ix_recurring_task_schedules_firm_id", table_name="recurring_task_schedules")
    op.drop_table("recurring_task_schedules")
    op.drop_index("ix_recurrence_patterns_firm_id", table_name="recurrence_patterns")
    op.drop_table("recurrence_patterns")
    op.drop_index("ix_task_templates_firm_id", table_name="task_templates")
    op.drop_table("task_templates")
