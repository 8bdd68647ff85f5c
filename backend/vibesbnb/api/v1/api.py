# backend/vibesbnb/api/v1/api.py
"""
VibesBNB API Router
- Availability (조회 / 호스트 차단)
- iCal (외부 캘린더 import / export 피드)
- Booking 훅
"""

from fastapi import APIRouter
from pydantic import BaseModel

from vibesbnb.api.v1 import (
    availability,
    bookings,
    ical,
)

api_router = APIRouter()

# ✅ Availability
api_router.include_router(availability.router)

# ✅ iCal import / export
api_router.include_router(ical.router)

# ✅ Booking hooks
api_router.include_router(bookings.router)


# ============================================================
# Scheduler API (관리용)
# ============================================================

class SchedulerStatusResponse(BaseModel):
    running: bool
    interval_hours: int | None
    next_run: str | None


@api_router.get("/scheduler/status", response_model=SchedulerStatusResponse, tags=["Scheduler"])
def get_scheduler_status():
    """스케줄러 상태 조회"""
    from vibesbnb.core.config import settings
    from vibesbnb.services.scheduler import ICAL_ENQUEUE_JOB_ID, get_scheduler

    scheduler = get_scheduler()
    if scheduler is None:
        return SchedulerStatusResponse(running=False, interval_hours=None, next_run=None)

    job = scheduler.get_job(ICAL_ENQUEUE_JOB_ID)
    next_run = None
    if job and job.next_run_time:
        next_run = job.next_run_time.isoformat()

    return SchedulerStatusResponse(
        running=scheduler.running,
        interval_hours=settings.ICAL_SYNC_INTERVAL_HOURS,
        next_run=next_run,
    )
