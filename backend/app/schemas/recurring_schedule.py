from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.recurrence import RecurrenceRule


class RecurringScheduleCreate(BaseModel):
    template_id: int = Field(gt=0)
    client_id: Optional[int] = Field(default=None, gt=0)
    assigned_to: List[int] = Field(default_factory=list)
    rule: Optional[RecurrenceRule] = None
    pattern_id: Optional[int] = Field(default=None, gt=0)
    start_date: Optional[date] = None

    @model_validator(mode="after")
    def require_rule_or_pattern(self) -> "RecurringScheduleCreate":
        if self.rule is None and self.pattern_id is None:
            raise ValueError("Either rule or pattern_id is required.")
        return self


class RecurringScheduleUpdate(BaseModel):
    is_active: bool


class RecurringScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    firm_id: int
    template_id: int
    client_id: Optional[int] = None
    assigned_to: List[int] = Field(default_factory=list)
    pattern_id: Optional[int] = None
    rule: RecurrenceRule
    frequency_description: str
    last_generated_at: Optional[datetime] = None
    next_generation_date: date
    is_active: bool
    occurrence_count: int
    deactivation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class GeneratedTaskRead(BaseModel):
    task_id: int
    schedule_id: int
    due_date: date


class ScheduleOutcomeRead(BaseModel):
    schedule_id: int
    code: str
    reason: str
    detail: str = ""


class GenerationSummaryRead(BaseModel):
    created_count: int
    deactivated_count: int
    failed_count: int
    created: List[GeneratedTaskRead] = Field(default_factory=list)
    skipped: List[ScheduleOutcomeRead] = Field(default_factory=list)
