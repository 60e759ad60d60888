from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import FirmContextDep, SessionDep, SessionFactoryDep
from app.models.recurring_schedule import RecurringSchedule
from app.schemas.recurring_schedule import (
    GeneratedTaskRead,
    GenerationSummaryRead,
    RecurringScheduleCreate,
    RecurringScheduleRead,
    RecurringScheduleUpdate,
    ScheduleOutcomeRead,
)
from app.schemas.task import TaskRead
from app.services import generation as generation_service
from app.services import recurrence as recurrence_service
from app.services import recurring_schedules as schedules_service
from app.services import tasks as tasks_service
from app.services.errors import NotFoundError, ScheduleStateError

router = APIRouter()

_REASON_LABELS = {
    generation_service.SkipReason.end_condition_met: "End condition reached; schedule deactivated",
    generation_service.SkipReason.not_found: "Task template not found",
    generation_service.SkipReason.invalid_pattern: "Stored recurrence rule is invalid",
    generation_service.SkipReason.concurrency_conflict: "Already generated by another run",
    generation_service.SkipReason.persistence_error: "Could not save the generated task",
    generation_service.SkipReason.timeout: "Timed out; will retry on the next run",
    generation_service.SkipReason.unexpected_error: "Unexpected error; will retry on the next run",
}


def _schedule_read(schedule: RecurringSchedule) -> RecurringScheduleRead:
    rule = schedule.get_rule()
    return RecurringScheduleRead(
        id=schedule.id,
        firm_id=schedule.firm_id,
        template_id=schedule.template_id,
        client_id=schedule.client_id,
        assigned_to=list(schedule.assigned_to or []),
        pattern_id=schedule.pattern_id,
        rule=rule,
        frequency_description=recurrence_service.describe_rule(rule),
        last_generated_at=schedule.last_generated_at,
        next_generation_date=schedule.next_generation_date,
        is_active=schedule.is_active,
        occurrence_count=schedule.occurrence_count,
        deactivation_reason=schedule.deactivation_reason,
        created_at=schedule.created_at,
        updated_at=schedule.updated_at,
    )


def _summary_read(result: generation_service.GenerationResult) -> GenerationSummaryRead:
    return GenerationSummaryRead(
        created_count=len(result.created),
        deactivated_count=len(result.deactivated),
        failed_count=len(result.failures),
        created=[
            GeneratedTaskRead(task_id=ref.task_id, schedule_id=ref.schedule_id, due_date=ref.due_date)
            for ref in result.created
        ],
        skipped=[
            ScheduleOutcomeRead(
                schedule_id=entry.schedule_id,
                code=entry.reason.value,
                reason=_REASON_LABELS.get(entry.reason, entry.reason.value),
                detail=entry.detail,
            )
            for entry in result.skipped
        ],
    )


@router.get("/", response_model=List[RecurringScheduleRead])
async def list_schedules(
    session: SessionDep,
    firm: FirmContextDep,
    include_inactive: bool = Query(default=False),
) -> List[RecurringScheduleRead]:
    schedules = await schedules_service.list_schedules(
        session,
        firm_id=firm.firm_id,
        include_inactive=include_inactive,
    )
    return [_schedule_read(schedule) for schedule in schedules]


@router.post("/", response_model=RecurringScheduleRead, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    schedule_in: RecurringScheduleCreate,
    session: SessionDep,
    firm: FirmContextDep,
) -> RecurringScheduleRead:
    try:
        schedule = await schedules_service.create_schedule(
            session,
            firm_id=firm.firm_id,
            template_id=schedule_in.template_id,
            client_id=schedule_in.client_id,
            assigned_to=schedule_in.assigned_to,
            rule=schedule_in.rule,
            pattern_id=schedule_in.pattern_id,
            start_date=schedule_in.start_date,
            created_by_id=firm.user_id,
        )
    except recurrence_service.InvalidPatternError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    await session.commit()
    await session.refresh(schedule)
    return _schedule_read(schedule)


@router.post("/generate", response_model=GenerationSummaryRead)
async def generate_now(
    session_factory: SessionFactoryDep,
    firm: FirmContextDep,
) -> GenerationSummaryRead:
    result = await generation_service.run_generation(firm_id=firm.firm_id, session_factory=session_factory)
    return _summary_read(result)


@router.get("/{schedule_id}", response_model=RecurringScheduleRead)
async def read_schedule(
    schedule_id: int,
    session: SessionDep,
    firm: FirmContextDep,
) -> RecurringScheduleRead:
    try:
        schedule = await schedules_service.get_schedule(session, schedule_id=schedule_id, firm_id=firm.firm_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _schedule_read(schedule)


@router.patch("/{schedule_id}", response_model=RecurringScheduleRead)
async def update_schedule(
    schedule_id: int,
    schedule_in: RecurringScheduleUpdate,
    session: SessionDep,
    firm: FirmContextDep,
) -> RecurringScheduleRead:
    try:
        schedule = await schedules_service.toggle_schedule(
            session,
            schedule_id=schedule_id,
            is_active=schedule_in.is_active,
            firm_id=firm.firm_id,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ScheduleStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    await session.commit()
    await session.refresh(schedule)
    return _schedule_read(schedule)


@router.post("/{schedule_id}/deactivate", response_model=RecurringScheduleRead)
async def deactivate_schedule(
    schedule_id: int,
    session: SessionDep,
    firm: FirmContextDep,
) -> RecurringScheduleRead:
    try:
        schedule = await schedules_service.deactivate_schedule(session, schedule_id=schedule_id, firm_id=firm.firm_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    await session.commit()
    await session.refresh(schedule)
    return _schedule_read(schedule)


@router.get("/{schedule_id}/tasks", response_model=List[TaskRead])
async def list_schedule_tasks(
    schedule_id: int,
    session: SessionDep,
    firm: FirmContextDep,
) -> List[TaskRead]:
    try:
        schedule = await schedules_service.get_schedule(session, schedule_id=schedule_id, firm_id=firm.firm_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    tasks = await tasks_service.list_schedule_tasks(session, schedule_id=schedule.id)
    return [TaskRead.model_validate(task) for task in tasks]
