"""Batch materialization of due recurring schedules.

Each due schedule is processed in its own session and transaction: the task
insert and the conditional schedule update either commit together or not at
all. A failure on one schedule is recorded in the result and the batch moves
on to the next schedule.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.db.session import AsyncSessionLocal
from app.models.recurring_schedule import DeactivationReason, RecurringSchedule
from app.schemas.recurrence import AfterOccurrencesEnd, ByDateEnd, RecurrenceRule
from app.services import recurrence as recurrence_service
from app.services import recurring_schedules as schedules_service
from app.services import task_templates as templates_service
from app.services import tasks as tasks_service
from app.services.errors import ConcurrencyConflictError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class SkipReason(str, Enum):
    end_condition_met = "end_condition_met"
    not_found = "not_found"
    invalid_pattern = "invalid_pattern"
    concurrency_conflict = "concurrency_conflict"
    persistence_error = "persistence_error"
    timeout = "timeout"
    unexpected_error = "unexpected_error"


FAILURE_REASONS = frozenset(
    {
        SkipReason.not_found,
        SkipReason.invalid_pattern,
        SkipReason.concurrency_conflict,
        SkipReason.persistence_error,
        SkipReason.timeout,
        SkipReason.unexpected_error,
    }
)


@dataclass(frozen=True)
class TaskRef:
    task_id: int
    schedule_id: int
    due_date: date


@dataclass(frozen=True)
class ScheduleRef:
    schedule_id: int
    next_generation_date: Optional[date] = None


@dataclass(frozen=True)
class SkippedSchedule:
    schedule_id: int
    reason: SkipReason
    detail: str = ""


@dataclass
class GenerationResult:
    created: list[TaskRef] = field(default_factory=list)
    advanced: list[ScheduleRef] = field(default_factory=list)
    skipped: list[SkippedSchedule] = field(default_factory=list)
    deactivated: list[ScheduleRef] = field(default_factory=list)

    @property
    def failures(self) -> list[SkippedSchedule]:
        return [entry for entry in self.skipped if entry.reason in FAILURE_REASONS]

    def skip(self, schedule_id: int, reason: SkipReason, detail: str = "") -> None:
        self.skipped.append(SkippedSchedule(schedule_id=schedule_id, reason=reason, detail=detail))


def _ensure_timezone(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def end_condition_reached(rule: RecurrenceRule, *, occurrence_count: int, now: datetime) -> bool:
    end = rule.end_condition
    if isinstance(end, AfterOccurrencesEnd):
        return occurrence_count >= end.occurrences
    if isinstance(end, ByDateEnd):
        return now.date() > end.end_date
    return False


def _exhausted_after(rule: RecurrenceRule, *, occurrence_count: int, next_date: date) -> bool:
    end = rule.end_condition
    if isinstance(end, AfterOccurrencesEnd):
        return occurrence_count >= end.occurrences
    if isinstance(end, ByDateEnd):
        return next_date > end.end_date
    return False


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Commit failed: {exc}") from exc


@dataclass(frozen=True)
class _StagedWrite:
    """Writes flushed for one schedule, waiting for their commit."""

    deactivate_only: bool
    task_id: Optional[int] = None
    due_date: Optional[date] = None
    next_date: Optional[date] = None
    exhausted: bool = False


async def _stage_schedule(session: AsyncSession, schedule: RecurringSchedule, now: datetime) -> _StagedWrite:
    rule = schedule.get_rule()
    recurrence_service.validate_rule(rule)

    if end_condition_reached(rule, occurrence_count=schedule.occurrence_count, now=now):
        swapped = await schedules_service.compare_and_swap_schedule(
            session,
            schedule.id,
            schedule.version,
            {"is_active": False, "deactivation_reason": DeactivationReason.end_condition_met.value},
        )
        if not swapped:
            raise ConcurrencyConflictError(f"Schedule {schedule.id} changed while deactivating")
        return _StagedWrite(deactivate_only=True)

    template = await templates_service.get_template(session, schedule.template_id, firm_id=schedule.firm_id)
    due_date = schedule.next_generation_date
    task = await tasks_service.create_task(
        session,
        tasks_service.GeneratedTaskInput(
            template=template,
            due_date=due_date,
            schedule_id=schedule.id,
            client_id=schedule.client_id,
            assigned_to=list(schedule.assigned_to or []),
            recurrence_pattern_id=schedule.pattern_id,
        ),
    )

    occurrence_count = schedule.occurrence_count + 1
    next_date = recurrence_service.next_occurrence(rule, due_date)
    fields: dict[str, Any] = {
        "last_generated_at": now,
        "occurrence_count": occurrence_count,
        "next_generation_date": next_date,
    }
    exhausted = _exhausted_after(rule, occurrence_count=occurrence_count, next_date=next_date)
    if exhausted:
        fields["is_active"] = False
        fields["deactivation_reason"] = DeactivationReason.end_condition_met.value

    swapped = await schedules_service.compare_and_swap_schedule(session, schedule.id, schedule.version, fields)
    if not swapped:
        raise ConcurrencyConflictError(f"Schedule {schedule.id} was advanced by another runner")
    return _StagedWrite(
        deactivate_only=False,
        task_id=task.id,
        due_date=due_date,
        next_date=next_date,
        exhausted=exhausted,
    )


def _record(result: GenerationResult, schedule_id: int, staged: _StagedWrite) -> None:
    if staged.deactivate_only:
        result.skip(schedule_id, SkipReason.end_condition_met)
        result.deactivated.append(ScheduleRef(schedule_id=schedule_id))
        logger.info("recurring-generation: schedule %s reached its end condition", schedule_id)
        return

    result.created.append(TaskRef(task_id=staged.task_id, schedule_id=schedule_id, due_date=staged.due_date))
    result.advanced.append(ScheduleRef(schedule_id=schedule_id, next_generation_date=staged.next_date))
    if staged.exhausted:
        result.deactivated.append(ScheduleRef(schedule_id=schedule_id, next_generation_date=staged.next_date))
    logger.debug(
        "recurring-generation: schedule %s produced task %s due %s; next %s",
        schedule_id,
        staged.task_id,
        staged.due_date,
        staged.next_date,
    )


async def run_generation(
    now: Optional[datetime] = None,
    *,
    firm_id: Optional[int] = None,
    session_factory: Optional[SessionFactory] = None,
    write_timeout: Optional[float] = None,
) -> GenerationResult:
    """Materialize tasks for every active schedule that has come due.

    Safe to call repeatedly and concurrently: a schedule is only advanced by a
    conditional update on its version, and the task insert shares that
    transaction, so each occurrence is materialized at most once.

    ``write_timeout`` bounds the staged writes of each schedule. The commit
    runs outside it, so a schedule reported as timed out was never committed.
    """
    now = _ensure_timezone(now or datetime.now(timezone.utc))
    factory = session_factory or AsyncSessionLocal
    timeout = settings.GENERATION_WRITE_TIMEOUT_SECONDS if write_timeout is None else write_timeout
    result = GenerationResult()

    async with factory() as session:
        due = await schedules_service.load_active_schedules(session, now, firm_id=firm_id)
    if not due:
        logger.debug("recurring-generation: no schedules due")
        return result

    for schedule in due:
        schedule_id = schedule.id
        async with factory() as session:
            try:
                staged = await asyncio.wait_for(_stage_schedule(session, schedule, now), timeout)
                await _commit(session)
            except asyncio.TimeoutError:
                result.skip(schedule_id, SkipReason.timeout, f"Write exceeded {timeout}s")
                logger.warning("recurring-generation: schedule %s timed out; will retry", schedule_id)
            except NotFoundError as exc:
                result.skip(schedule_id, SkipReason.not_found, str(exc))
                logger.warning("recurring-generation: schedule %s skipped: %s", schedule_id, exc)
            except (recurrence_service.InvalidPatternError, ValidationError) as exc:
                result.skip(schedule_id, SkipReason.invalid_pattern, str(exc))
                logger.warning("recurring-generation: schedule %s has an invalid rule: %s", schedule_id, exc)
            except ConcurrencyConflictError as exc:
                result.skip(schedule_id, SkipReason.concurrency_conflict, str(exc))
                logger.info("recurring-generation: schedule %s handled by another runner", schedule_id)
            except (PersistenceError, SQLAlchemyError) as exc:
                result.skip(schedule_id, SkipReason.persistence_error, str(exc))
                logger.warning("recurring-generation: schedule %s could not be stored: %s", schedule_id, exc)
            except Exception as exc:
                result.skip(schedule_id, SkipReason.unexpected_error, f"{type(exc).__name__}: {exc}")
                logger.exception("recurring-generation: schedule %s failed unexpectedly", schedule_id)
            else:
                _record(result, schedule_id, staged)

    logger.info(
        "recurring-generation: %d task(s) created, %d schedule(s) deactivated, %d failure(s)",
        len(result.created),
        len(result.deactivated),
        len(result.failures),
    )
    return result
