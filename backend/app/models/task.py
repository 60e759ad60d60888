from datetime import date, datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import JSON, Column, Date, DateTime, String, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.task_template import TemplateCategory


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        # One task per schedule occurrence, whatever the runners do.
        UniqueConstraint("schedule_id", "due_date", name="uq_tasks_schedule_due_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    firm_id: int = Field(nullable=False, index=True)
    template_id: Optional[int] = Field(default=None, foreign_key="task_templates.id")
    schedule_id: Optional[int] = Field(default=None, foreign_key="recurring_task_schedules.id", index=True)
    client_id: Optional[int] = Field(default=None)
    title: str = Field(nullable=False, max_length=200)
    description: Optional[str] = Field(default=None)
    category: TemplateCategory = Field(
        default=TemplateCategory.other,
        sa_column=Column(String(16), nullable=False),
    )
    subtasks: List[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, server_default="[]"),
    )
    price: Optional[float] = Field(default=None)
    is_payable: bool = Field(default=False, nullable=False)
    payable_config: Optional[dict[str, Any]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
    )
    assigned_to: List[int] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, server_default="[]"),
    )
    due_date: Optional[date] = Field(default=None, sa_column=Column(Date, nullable=True))
    is_recurring: bool = Field(default=False, nullable=False)
    recurrence_pattern_id: Optional[int] = Field(default=None, foreign_key="recurrence_patterns.id")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
