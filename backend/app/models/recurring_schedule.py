from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import JSON, Column, Date, DateTime, Index, String
from sqlmodel import Field, SQLModel

from app.schemas.recurrence import RecurrenceRule


class DeactivationReason(str, Enum):
    end_condition_met = "end_condition_met"
    user_disabled = "user_disabled"


class RecurringSchedule(SQLModel, table=True):
    __tablename__ = "recurring_task_schedules"
    __table_args__ = (
        Index("ix_recurring_task_schedules_due", "is_active", "next_generation_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    firm_id: int = Field(nullable=False, index=True)
    template_id: int = Field(foreign_key="task_templates.id", nullable=False)
    client_id: Optional[int] = Field(default=None)
    assigned_to: List[int] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, server_default="[]"),
    )
    pattern_id: Optional[int] = Field(default=None, foreign_key="recurrence_patterns.id")
    # Snapshot of the rule at creation; editing a library pattern does not move live schedules.
    rule: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    last_generated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    next_generation_date: date = Field(sa_column=Column(Date, nullable=False))
    is_active: bool = Field(default=True, nullable=False)
    occurrence_count: int = Field(default=0, nullable=False)
    version: int = Field(default=1, nullable=False)
    deactivation_reason: Optional[DeactivationReason] = Field(
        default=None,
        sa_column=Column(String(32), nullable=True),
    )
    created_by_id: Optional[int] = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def get_rule(self) -> RecurrenceRule:
        return RecurrenceRule.model_validate(self.rule)
