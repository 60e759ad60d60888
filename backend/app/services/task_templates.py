from __future__ import annotations

from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models.task_template import TaskTemplate
from app.services.errors import NotFoundError


async def get_template(
    session: AsyncSession,
    template_id: int,
    *,
    firm_id: Optional[int] = None,
) -> TaskTemplate:
    """Return a live template or raise ``NotFoundError`` for missing or deleted ones."""
    stmt = select(TaskTemplate).where(
        TaskTemplate.id == template_id,
        TaskTemplate.deleted_at.is_(None),
    )
    if firm_id is not None:
        stmt = stmt.where(TaskTemplate.firm_id == firm_id)
    result = await session.exec(stmt)
    template = result.one_or_none()
    if template is None:
        raise NotFoundError(f"Task template {template_id} not found")
    return template
