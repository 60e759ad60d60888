from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models.recurrence_pattern import RecurrencePattern
from app.models.recurring_schedule import RecurringSchedule
from app.schemas.recurrence import PatternKind, RecurrenceRule
from app.services import recurrence as recurrence_service
from app.services.errors import NotFoundError, PatternInUseError, PatternNameTakenError


async def _ensure_name_available(session: AsyncSession, *, firm_id: int, name: str) -> None:
    stmt = select(RecurrencePattern.id).where(
        RecurrencePattern.firm_id == firm_id,
        RecurrencePattern.name == name,
    )
    result = await session.exec(stmt)
    if result.first() is not None:
        raise PatternNameTakenError(f"A pattern named '{name}' already exists")


async def list_patterns(
    session: AsyncSession,
    *,
    firm_id: int,
    kind: Optional[PatternKind] = None,
    is_active: bool = True,
) -> list[RecurrencePattern]:
    stmt = select(RecurrencePattern).where(
        RecurrencePattern.firm_id == firm_id,
        RecurrencePattern.is_active == is_active,
    )
    if kind is not None:
        stmt = stmt.where(RecurrencePattern.kind == kind.value)
    stmt = stmt.order_by(RecurrencePattern.kind, RecurrencePattern.name)
    result = await session.exec(stmt)
    return list(result.all())


async def get_pattern(
    session: AsyncSession,
    *,
    pattern_id: int,
    firm_id: int,
) -> RecurrencePattern:
    stmt = select(RecurrencePattern).where(
        RecurrencePattern.id == pattern_id,
        RecurrencePattern.firm_id == firm_id,
    )
    result = await session.exec(stmt)
    pattern = result.one_or_none()
    if pattern is None:
        raise NotFoundError("Recurrence pattern not found")
    return pattern


async def create_pattern(
    session: AsyncSession,
    *,
    firm_id: int,
    name: str,
    rule: RecurrenceRule,
    description: Optional[str] = None,
    created_by_id: Optional[int] = None,
) -> RecurrencePattern:
    recurrence_service.validate_rule(rule)
    name = name.strip()
    await _ensure_name_available(session, firm_id=firm_id, name=name)
    pattern = RecurrencePattern(
        firm_id=firm_id,
        name=name,
        description=description,
        kind=rule.kind,
        rule=rule.model_dump(mode="json"),
        created_by_id=created_by_id,
    )
    session.add(pattern)
    await session.flush()
    return pattern


async def update_pattern(
    session: AsyncSession,
    *,
    pattern_id: int,
    firm_id: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
    rule: Optional[RecurrenceRule] = None,
    is_active: Optional[bool] = None,
) -> RecurrencePattern:
    pattern = await get_pattern(session, pattern_id=pattern_id, firm_id=firm_id)
    if rule is not None:
        recurrence_service.validate_rule(rule)
        pattern.rule = rule.model_dump(mode="json")
        pattern.kind = rule.kind
    if name is not None and name.strip() != pattern.name:
        await _ensure_name_available(session, firm_id=firm_id, name=name.strip())
        pattern.name = name.strip()
    if description is not None:
        pattern.description = description
    if is_active is not None:
        pattern.is_active = is_active
    pattern.updated_at = datetime.now(timezone.utc)
    session.add(pattern)
    await session.flush()
    return pattern


async def delete_pattern(
    session: AsyncSession,
    *,
    pattern_id: int,
    firm_id: int,
) -> None:
    pattern = await get_pattern(session, pattern_id=pattern_id, firm_id=firm_id)
    stmt = select(func.count()).select_from(RecurringSchedule).where(RecurringSchedule.pattern_id == pattern.id)
    result = await session.exec(stmt)
    if result.one():
        raise PatternInUseError("Recurrence pattern is used by recurring schedules; deactivate it instead")
    await session.delete(pattern)
    await session.flush()


async def create_ca_presets(
    session: AsyncSession,
    *,
    firm_id: int,
    created_by_id: Optional[int] = None,
) -> list[RecurrencePattern]:
    """Create the standard compliance patterns a firm does not have yet."""
    stmt = select(RecurrencePattern.name).where(RecurrencePattern.firm_id == firm_id)
    result = await session.exec(stmt)
    existing = set(result.all())

    created: list[RecurrencePattern] = []
    for name, description, rule in recurrence_service.CA_PRESETS:
        if name in existing:
            continue
        created.append(
            await create_pattern(
                session,
                firm_id=firm_id,
                name=name,
                rule=rule,
                description=description,
                created_by_id=created_by_id,
            )
        )
    return created
