from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.task_template import TemplateCategory


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    firm_id: int
    template_id: Optional[int] = None
    schedule_id: Optional[int] = None
    client_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    category: TemplateCategory
    subtasks: List[dict[str, Any]] = Field(default_factory=list)
    price: Optional[float] = None
    is_payable: bool = False
    assigned_to: List[int] = Field(default_factory=list)
    due_date: Optional[date] = None
    is_recurring: bool
    recurrence_pattern_id: Optional[int] = None
    created_at: datetime
