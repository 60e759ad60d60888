from datetime import date, datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PatternKind(str, Enum):
    monthly = "monthly"
    yearly = "yearly"
    quarterly = "quarterly"
    custom = "custom"


class CustomUnit(str, Enum):
    days = "days"
    weeks = "weeks"
    months = "months"
    years = "years"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class MonthlyConfig(_FrozenModel):
    frequency: int = 1
    day_of_month: Optional[int] = None
    end_of_month: bool = False
    week_of_month: Optional[int] = None
    day_of_week: Optional[int] = None


class YearlyConfig(_FrozenModel):
    frequency: int = 1
    months: frozenset[int] = frozenset()
    day_of_month: int = 1


class QuarterlyConfig(_FrozenModel):
    frequency: int = 1
    month_of_quarter: int = 1
    day_of_month: int = 1


class CustomConfig(_FrozenModel):
    frequency: int = 1
    unit: CustomUnit = CustomUnit.weeks
    days_of_week: frozenset[int] = frozenset()


class NeverEnd(_FrozenModel):
    type: Literal["never"] = "never"


class AfterOccurrencesEnd(_FrozenModel):
    type: Literal["after_occurrences"] = "after_occurrences"
    occurrences: int


class ByDateEnd(_FrozenModel):
    type: Literal["by_date"] = "by_date"
    end_date: date


EndCondition = Annotated[
    Union[NeverEnd, AfterOccurrencesEnd, ByDateEnd],
    Field(discriminator="type"),
]


class RecurrenceRule(_FrozenModel):
    """How often, and on which calendar rule, an obligation recurs.

    Exactly one of the ``*_config`` payloads is expected to be populated and it
    must match ``kind``. Shape is checked by ``app.services.recurrence.validate_rule``
    so that inconsistencies surface as ``InvalidPatternError``.
    """

    kind: PatternKind
    monthly_config: Optional[MonthlyConfig] = None
    yearly_config: Optional[YearlyConfig] = None
    quarterly_config: Optional[QuarterlyConfig] = None
    custom_config: Optional[CustomConfig] = None
    end_condition: EndCondition = Field(default_factory=NeverEnd)


class RecurrencePatternBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    rule: RecurrenceRule


class RecurrencePatternCreate(RecurrencePatternBase):
    pass


class RecurrencePatternUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    rule: Optional[RecurrenceRule] = None
    is_active: Optional[bool] = None


class RecurrencePatternRead(RecurrencePatternBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    firm_id: int
    kind: PatternKind
    is_active: bool
    frequency_description: str
    created_by_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class PreviewRequest(BaseModel):
    start_date: Optional[date] = None
    count: int = Field(default=5, ge=1)


class InlinePreviewRequest(PreviewRequest):
    rule: RecurrenceRule


class PreviewRead(BaseModel):
    pattern: Optional[str] = None
    description: str
    occurrences: List[date]
