from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import FirmContextDep, SessionDep
from app.core.config import settings
from app.models.recurrence_pattern import RecurrencePattern
from app.schemas.recurrence import (
    InlinePreviewRequest,
    PatternKind,
    PreviewRead,
    PreviewRequest,
    RecurrencePatternCreate,
    RecurrencePatternRead,
    RecurrencePatternUpdate,
    RecurrenceRule,
)
from app.services import recurrence as recurrence_service
from app.services import recurrence_patterns as patterns_service
from app.services.errors import NotFoundError, PatternInUseError, PatternNameTakenError

router = APIRouter()


def _pattern_read(pattern: RecurrencePattern) -> RecurrencePatternRead:
    rule = pattern.get_rule()
    return RecurrencePatternRead(
        id=pattern.id,
        firm_id=pattern.firm_id,
        name=pattern.name,
        description=pattern.description,
        rule=rule,
        kind=rule.kind,
        is_active=pattern.is_active,
        frequency_description=recurrence_service.describe_rule(rule),
        created_by_id=pattern.created_by_id,
        created_at=pattern.created_at,
        updated_at=pattern.updated_at,
    )


def _preview(rule: RecurrenceRule, start_date: Optional[date], count: int, name: Optional[str] = None) -> PreviewRead:
    if count > settings.PREVIEW_MAX_OCCURRENCES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"At most {settings.PREVIEW_MAX_OCCURRENCES} occurrences can be previewed",
        )
    after = start_date or datetime.now(timezone.utc).date()
    try:
        occurrences = list(recurrence_service.preview_occurrences(rule, after, count))
    except recurrence_service.InvalidPatternError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return PreviewRead(pattern=name, description=recurrence_service.describe_rule(rule), occurrences=occurrences)


@router.get("/", response_model=List[RecurrencePatternRead])
async def list_patterns(
    session: SessionDep,
    firm: FirmContextDep,
    kind: Optional[PatternKind] = Query(default=None),
    is_active: bool = Query(default=True),
) -> List[RecurrencePatternRead]:
    patterns = await patterns_service.list_patterns(session, firm_id=firm.firm_id, kind=kind, is_active=is_active)
    return [_pattern_read(pattern) for pattern in patterns]


@router.post("/", response_model=RecurrencePatternRead, status_code=status.HTTP_201_CREATED)
async def create_pattern(
    pattern_in: RecurrencePatternCreate,
    session: SessionDep,
    firm: FirmContextDep,
) -> RecurrencePatternRead:
    try:
        pattern = await patterns_service.create_pattern(
            session,
            firm_id=firm.firm_id,
            name=pattern_in.name,
            description=pattern_in.description,
            rule=pattern_in.rule,
            created_by_id=firm.user_id,
        )
    except recurrence_service.InvalidPatternError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except PatternNameTakenError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    await session.commit()
    await session.refresh(pattern)
    return _pattern_read(pattern)


@router.post("/presets", response_model=List[RecurrencePatternRead])
async def create_presets(
    session: SessionDep,
    firm: FirmContextDep,
) -> List[RecurrencePatternRead]:
    patterns = await patterns_service.create_ca_presets(session, firm_id=firm.firm_id, created_by_id=firm.user_id)
    await session.commit()
    return [_pattern_read(pattern) for pattern in patterns]


@router.post("/preview", response_model=PreviewRead)
async def preview_rule(
    preview_in: InlinePreviewRequest,
    firm: FirmContextDep,
) -> PreviewRead:
    return _preview(preview_in.rule, preview_in.start_date, preview_in.count)


@router.get("/{pattern_id}", response_model=RecurrencePatternRead)
async def read_pattern(
    pattern_id: int,
    session: SessionDep,
    firm: FirmContextDep,
) -> RecurrencePatternRead:
    try:
        pattern = await patterns_service.get_pattern(session, pattern_id=pattern_id, firm_id=firm.firm_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _pattern_read(pattern)


@router.put("/{pattern_id}", response_model=RecurrencePatternRead)
async def update_pattern(
    pattern_id: int,
    pattern_in: RecurrencePatternUpdate,
    session: SessionDep,
    firm: FirmContextDep,
) -> RecurrencePatternRead:
    try:
        pattern = await patterns_service.update_pattern(
            session,
            pattern_id=pattern_id,
            firm_id=firm.firm_id,
            name=pattern_in.name,
            description=pattern_in.description,
            rule=pattern_in.rule,
            is_active=pattern_in.is_active,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except recurrence_service.InvalidPatternError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except PatternNameTakenError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    await session.commit()
    await session.refresh(pattern)
    return _pattern_read(pattern)


@router.delete("/{pattern_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pattern(
    pattern_id: int,
    session: SessionDep,
    firm: FirmContextDep,
) -> None:
    try:
        await patterns_service.delete_pattern(session, pattern_id=pattern_id, firm_id=firm.firm_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PatternInUseError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    await session.commit()


@router.post("/{pattern_id}/preview", response_model=PreviewRead)
async def preview_pattern(
    pattern_id: int,
    preview_in: PreviewRequest,
    session: SessionDep,
    firm: FirmContextDep,
) -> PreviewRead:
    try:
        pattern = await patterns_service.get_pattern(session, pattern_id=pattern_id, firm_id=firm.firm_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _preview(pattern.get_rule(), preview_in.start_date, preview_in.count, name=pattern.name)
