from fastapi import APIRouter

from app.api.v1.endpoints import recurrence_patterns, recurring_schedules

api_router = APIRouter()
api_router.include_router(recurrence_patterns.router, prefix="/recurrence-patterns", tags=["recurrence-patterns"])
api_router.include_router(recurring_schedules.router, prefix="/recurring-schedules", tags=["recurring-schedules"])
