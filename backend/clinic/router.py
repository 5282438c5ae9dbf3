from __future__ import annotations

from fastapi import APIRouter

from .appointment_routes import router as appointment_router
from .case_record_routes import router as case_record_router
from .schedule_routes import router as schedule_router

api_router = APIRouter()
api_router.include_router(appointment_router)
api_router.include_router(schedule_router)
api_router.include_router(case_record_router)


@api_router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "clinic-scheduling-api"}
