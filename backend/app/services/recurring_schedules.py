from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models.recurring_schedule import DeactivationReason, RecurringSchedule
from app.schemas.recurrence import RecurrenceRule
from app.services import recurrence as recurrence_service
from app.services import recurrence_patterns as patterns_service
from app.services import task_templates as templates_service
from app.services.errors import NotFoundError, ScheduleStateError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_schedule(
    session: AsyncSession,
    *,
    firm_id: int,
    template_id: int,
    assigned_to: Sequence[int],
    rule: Optional[RecurrenceRule] = None,
    pattern_id: Optional[int] = None,
    client_id: Optional[int] = None,
    start_date: Optional[date] = None,
    created_by_id: Optional[int] = None,
) -> RecurringSchedule:
    """Bind a rule to a template and compute its first generation date.

    Either ``rule`` or ``pattern_id`` must be given; an explicit ``rule`` wins.
    ``InvalidPatternError`` propagates to the caller unchanged.
    """
    if rule is None:
        if pattern_id is None:
            raise recurrence_service.InvalidPatternError("A rule or a pattern is required.")
        pattern = await patterns_service.get_pattern(session, pattern_id=pattern_id, firm_id=firm_id)
        rule = pattern.get_rule()
    recurrence_service.validate_rule(rule)

    await templates_service.get_template(session, template_id, firm_id=firm_id)

    anchor = start_date or _utcnow().date()
    schedule = RecurringSchedule(
        firm_id=firm_id,
        template_id=template_id,
        client_id=client_id,
        assigned_to=sorted(set(assigned_to)),
        pattern_id=pattern_id,
        rule=rule.model_dump(mode="json"),
        next_generation_date=recurrence_service.first_occurrence(rule, anchor),
        created_by_id=created_by_id,
    )
    session.add(schedule)
    await session.flush()
    return schedule


async def get_schedule(
    session: AsyncSession,
    *,
    schedule_id: int,
    firm_id: Optional[int] = None,
) -> RecurringSchedule:
    stmt = select(RecurringSchedule).where(RecurringSchedule.id == schedule_id)
    if firm_id is not None:
        stmt = stmt.where(RecurringSchedule.firm_id == firm_id)
    result = await session.exec(stmt)
    schedule = result.one_or_none()
    if schedule is None:
        raise NotFoundError(f"Recurring schedule {schedule_id} not found")
    return schedule


async def list_schedules(
    session: AsyncSession,
    *,
    firm_id: int,
    include_inactive: bool = False,
) -> list[RecurringSchedule]:
    stmt = select(RecurringSchedule).where(RecurringSchedule.firm_id == firm_id)
    if not include_inactive:
        stmt = stmt.where(RecurringSchedule.is_active.is_(True))
    stmt = stmt.order_by(RecurringSchedule.next_generation_date, RecurringSchedule.id)
    result = await session.exec(stmt)
    return list(result.all())


async def load_active_schedules(
    session: AsyncSession,
    now: datetime,
    *,
    firm_id: Optional[int] = None,
) -> list[RecurringSchedule]:
    """Active schedules whose next generation date has arrived."""
    stmt = select(RecurringSchedule).where(
        RecurringSchedule.is_active.is_(True),
        RecurringSchedule.next_generation_date <= now.date(),
    )
    if firm_id is not None:
        stmt = stmt.where(RecurringSchedule.firm_id == firm_id)
    stmt = stmt.order_by(RecurringSchedule.next_generation_date, RecurringSchedule.id)
    result = await session.exec(stmt)
    return list(result.all())


async def compare_and_swap_schedule(
    session: AsyncSession,
    schedule_id: int,
    expected_version: int,
    fields: dict[str, Any],
) -> bool:
    """Apply ``fields`` only if nobody bumped the version since it was read."""
    values = {**fields, "version": expected_version + 1}
    values.setdefault("updated_at", _utcnow())
    stmt = (
        update(RecurringSchedule)
        .where(
            RecurringSchedule.id == schedule_id,
            RecurringSchedule.version == expected_version,
        )
        .values(**values)
    )
    result = await session.exec(stmt)
    return result.rowcount == 1  # type: ignore


async def _set_active(
    session: AsyncSession,
    schedule: RecurringSchedule,
    *,
    is_active: bool,
    reason: Optional[DeactivationReason],
) -> RecurringSchedule:
    schedule.is_active = is_active
    schedule.deactivation_reason = reason
    schedule.version += 1
    schedule.updated_at = _utcnow()
    session.add(schedule)
    await session.flush()
    return schedule


async def deactivate_schedule(
    session: AsyncSession,
    *,
    schedule_id: int,
    firm_id: Optional[int] = None,
) -> RecurringSchedule:
    schedule = await get_schedule(session, schedule_id=schedule_id, firm_id=firm_id)
    if not schedule.is_active:
        return schedule
    return await _set_active(session, schedule, is_active=False, reason=DeactivationReason.user_disabled)


async def toggle_schedule(
    session: AsyncSession,
    *,
    schedule_id: int,
    is_active: bool,
    firm_id: Optional[int] = None,
) -> RecurringSchedule:
    schedule = await get_schedule(session, schedule_id=schedule_id, firm_id=firm_id)
    if schedule.is_active == is_active:
        return schedule
    if not is_active:
        return await _set_active(session, schedule, is_active=False, reason=DeactivationReason.user_disabled)
    if schedule.deactivation_reason == DeactivationReason.end_condition_met:
        raise ScheduleStateError("Schedule has reached its end condition; create a new schedule instead")
    return await _set_active(session, schedule, is_active=True, reason=None)
