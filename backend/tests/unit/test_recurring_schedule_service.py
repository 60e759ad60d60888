"""
Service tests for the recurring schedule lifecycle.

Tests:
- Creating schedules from inline rules and stored patterns
- First generation date computation
- Deactivation and toggling rules
- Conditional (versioned) updates
"""

from datetime import date, datetime, timezone

import pytest
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models.recurring_schedule import DeactivationReason
from app.schemas.recurrence import MonthlyConfig, PatternKind, QuarterlyConfig, RecurrenceRule
from app.services import recurring_schedules as schedules_service
from app.services.errors import NotFoundError, ScheduleStateError
from app.services.recurrence import InvalidPatternError
from app.testing import create_pattern, create_schedule, create_template, monthly_rule

pytestmark = pytest.mark.service


async def test_create_schedule_from_rule(session: AsyncSession):
    template = await create_template(session)

    schedule = await schedules_service.create_schedule(
        session,
        firm_id=template.firm_id,
        template_id=template.id,
        assigned_to=[9, 4, 9],
        client_id=11,
        rule=monthly_rule(20),
        start_date=date(2024, 3, 21),
        created_by_id=5,
    )
    await session.commit()

    assert schedule.id is not None
    assert schedule.next_generation_date == date(2024, 4, 20)
    assert schedule.assigned_to == [4, 9]
    assert schedule.is_active is True
    assert schedule.occurrence_count == 0
    assert schedule.version == 1
    assert schedule.pattern_id is None
    assert schedule.get_rule() == monthly_rule(20)


async def test_start_date_on_occurrence_is_first_due_date(session: AsyncSession):
    template = await create_template(session)

    schedule = await schedules_service.create_schedule(
        session,
        firm_id=template.firm_id,
        template_id=template.id,
        assigned_to=[],
        rule=monthly_rule(20),
        start_date=date(2024, 3, 20),
    )

    assert schedule.next_generation_date == date(2024, 3, 20)


async def test_create_schedule_from_pattern_snapshots_rule(session: AsyncSession):
    template = await create_template(session)
    rule = RecurrenceRule(
        kind=PatternKind.quarterly,
        quarterly_config=QuarterlyConfig(month_of_quarter=1, day_of_month=18),
    )
    pattern = await create_pattern(session, rule, name="Quarterly GST")

    schedule = await schedules_service.create_schedule(
        session,
        firm_id=template.firm_id,
        template_id=template.id,
        assigned_to=[1],
        pattern_id=pattern.id,
        start_date=date(2024, 2, 1),
    )

    assert schedule.pattern_id == pattern.id
    assert schedule.get_rule() == rule
    assert schedule.next_generation_date == date(2024, 4, 18)


async def test_invalid_rule_is_rejected(session: AsyncSession):
    template = await create_template(session)
    bad_rule = RecurrenceRule(kind=PatternKind.monthly, monthly_config=MonthlyConfig(frequency=0, day_of_month=5))

    with pytest.raises(InvalidPatternError):
        await schedules_service.create_schedule(
            session,
            firm_id=template.firm_id,
            template_id=template.id,
            assigned_to=[1],
            rule=bad_rule,
        )


async def test_rule_or_pattern_required(session: AsyncSession):
    template = await create_template(session)

    with pytest.raises(InvalidPatternError):
        await schedules_service.create_schedule(
            session,
            firm_id=template.firm_id,
            template_id=template.id,
            assigned_to=[1],
        )


async def test_missing_template_is_not_found(session: AsyncSession):
    with pytest.raises(NotFoundError):
        await schedules_service.create_schedule(
            session,
            firm_id=1,
            template_id=999,
            assigned_to=[1],
            rule=monthly_rule(),
        )


async def test_template_from_other_firm_is_not_found(session: AsyncSession):
    template = await create_template(session, firm_id=2)

    with pytest.raises(NotFoundError):
        await schedules_service.create_schedule(
            session,
            firm_id=1,
            template_id=template.id,
            assigned_to=[1],
            rule=monthly_rule(),
        )


async def test_list_schedules_hides_inactive_by_default(session: AsyncSession):
    template = await create_template(session)
    later = await create_schedule(session, template, next_generation_date=date(2024, 5, 1))
    sooner = await create_schedule(session, template, next_generation_date=date(2024, 2, 1))
    stopped = await create_schedule(session, template, is_active=False, next_generation_date=date(2024, 1, 1))

    active = await schedules_service.list_schedules(session, firm_id=template.firm_id)
    everything = await schedules_service.list_schedules(session, firm_id=template.firm_id, include_inactive=True)

    assert [schedule.id for schedule in active] == [sooner.id, later.id]
    assert [schedule.id for schedule in everything] == [stopped.id, sooner.id, later.id]


async def test_load_active_schedules_only_returns_due(session: AsyncSession):
    template = await create_template(session)
    due = await create_schedule(session, template, next_generation_date=date(2024, 1, 20))
    await create_schedule(session, template, next_generation_date=date(2024, 1, 21))
    await create_schedule(session, template, is_active=False, next_generation_date=date(2024, 1, 1))

    loaded = await schedules_service.load_active_schedules(session, datetime(2024, 1, 20, 23, 0, tzinfo=timezone.utc))

    assert [schedule.id for schedule in loaded] == [due.id]


async def test_deactivate_bumps_version(session: AsyncSession):
    template = await create_template(session)
    schedule = await create_schedule(session, template)

    updated = await schedules_service.deactivate_schedule(session, schedule_id=schedule.id)
    await session.commit()

    assert updated.is_active is False
    assert updated.deactivation_reason == DeactivationReason.user_disabled
    assert updated.version == 2


async def test_deactivate_missing_schedule(session: AsyncSession):
    with pytest.raises(NotFoundError):
        await schedules_service.deactivate_schedule(session, schedule_id=404)


async def test_toggle_round_trip(session: AsyncSession):
    template = await create_template(session)
    schedule = await create_schedule(session, template)

    await schedules_service.toggle_schedule(session, schedule_id=schedule.id, is_active=False)
    resumed = await schedules_service.toggle_schedule(session, schedule_id=schedule.id, is_active=True)

    assert resumed.is_active is True
    assert resumed.deactivation_reason is None
    assert resumed.version == 3


async def test_toggle_cannot_revive_finished_schedule(session: AsyncSession):
    template = await create_template(session)
    schedule = await create_schedule(
        session,
        template,
        is_active=False,
        deactivation_reason=DeactivationReason.end_condition_met,
    )

    with pytest.raises(ScheduleStateError):
        await schedules_service.toggle_schedule(session, schedule_id=schedule.id, is_active=True)


async def test_compare_and_swap_requires_matching_version(session: AsyncSession):
    template = await create_template(session)
    schedule = await create_schedule(session, template, next_generation_date=date(2024, 1, 15))

    stale = await schedules_service.compare_and_swap_schedule(
        session, schedule.id, 7, {"next_generation_date": date(2030, 1, 1)}
    )
    fresh = await schedules_service.compare_and_swap_schedule(
        session, schedule.id, 1, {"next_generation_date": date(2024, 2, 15)}
    )
    await session.commit()
    await session.refresh(schedule)

    assert stale is False
    assert fresh is True
    assert schedule.version == 2
    assert schedule.next_generation_date == date(2024, 2, 15)
