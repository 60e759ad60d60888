from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models.task import Task
from app.models.task_template import TaskTemplate
from app.services.errors import ConcurrencyConflictError, PersistenceError

_OCCURRENCE_CONSTRAINT_MARKERS = ("uq_tasks_schedule_due_date", "tasks.schedule_id")


@dataclass
class GeneratedTaskInput:
    template: TaskTemplate
    due_date: date
    schedule_id: Optional[int] = None
    client_id: Optional[int] = None
    assigned_to: list[int] = field(default_factory=list)
    recurrence_pattern_id: Optional[int] = None


async def create_task(session: AsyncSession, task_in: GeneratedTaskInput) -> Task:
    """Materialize a task from its template and flush it inside the caller's transaction."""
    template = task_in.template
    task = Task(
        firm_id=template.firm_id,
        template_id=template.id,
        schedule_id=task_in.schedule_id,
        client_id=task_in.client_id,
        title=template.title,
        description=template.description,
        category=template.category,
        subtasks=[dict(subtask) for subtask in template.subtasks or []],
        price=template.price,
        is_payable=template.is_payable,
        payable_config=dict(template.payable_config) if template.payable_config else None,
        assigned_to=list(task_in.assigned_to),
        due_date=task_in.due_date,
        is_recurring=True,
        recurrence_pattern_id=task_in.recurrence_pattern_id,
    )
    session.add(task)
    try:
        await session.flush()
    except IntegrityError as exc:
        message = str(exc.orig)
        if any(marker in message for marker in _OCCURRENCE_CONSTRAINT_MARKERS):
            raise ConcurrencyConflictError(
                f"Task for schedule {task_in.schedule_id} due {task_in.due_date.isoformat()} already exists"
            ) from exc
        raise PersistenceError(f"Could not store task: {message}") from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Could not store task: {exc}") from exc
    return task


async def list_schedule_tasks(session: AsyncSession, *, schedule_id: int) -> list[Task]:
    stmt = select(Task).where(Task.schedule_id == schedule_id).order_by(Task.due_date)
    result = await session.exec(stmt)
    return list(result.all())
