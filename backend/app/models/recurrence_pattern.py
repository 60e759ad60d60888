from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column, DateTime, String, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.schemas.recurrence import PatternKind, RecurrenceRule


class RecurrencePattern(SQLModel, table=True):
    __tablename__ = "recurrence_patterns"
    __table_args__ = (UniqueConstraint("firm_id", "name", name="uq_recurrence_patterns_firm_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    firm_id: int = Field(nullable=False, index=True)
    name: str = Field(nullable=False, max_length=200)
    description: Optional[str] = Field(default=None)
    kind: PatternKind = Field(sa_column=Column(String(32), nullable=False))
    rule: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    is_active: bool = Field(default=True, nullable=False)
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
