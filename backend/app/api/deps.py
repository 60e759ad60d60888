from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from app.db.session import get_session, get_session_factory

SessionDep = Annotated[AsyncSession, Depends(get_session)]
SessionFactoryDep = Annotated[sessionmaker, Depends(get_session_factory)]


@dataclass
class FirmContext:
    """Tenant and acting user resolved by the upstream auth layer."""

    firm_id: int
    user_id: Optional[int] = None


async def get_firm_context(
    firm_id: Optional[int] = Header(None, alias="X-Firm-ID"),
    user_id: Optional[int] = Header(None, alias="X-User-ID"),
) -> FirmContext:
    if firm_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-Firm-ID header required")
    if firm_id <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid firm id")
    return FirmContext(firm_id=firm_id, user_id=user_id)


FirmContextDep = Annotated[FirmContext, Depends(get_firm_context)]
