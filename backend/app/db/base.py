"""Import all models for Alembic or metadata creation."""

from app.models.recurrence_pattern import RecurrencePattern
from app.models.recurring_schedule import RecurringSchedule
from app.models.task import Task
from app.models.task_template import TaskTemplate

__all__ = [
    "RecurrencePattern",
    "RecurringSchedule",
    "Task",
    "TaskTemplate",
]
