from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import JSON, Column, DateTime, String
from sqlmodel import Field, SQLModel


class TemplateCategory(str, Enum):
    gst = "gst"
    itr = "itr"
    roc = "roc"
    other = "other"


class TaskTemplate(SQLModel, table=True):
    __tablename__ = "task_templates"

    id: Optional[int] = Field(default=None, primary_key=True)
    firm_id: int = Field(nullable=False, index=True)
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
    estimated_hours: Optional[float] = Field(default=None)
    deleted_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
