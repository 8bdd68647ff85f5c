# backend/vibesbnb/api/v1/bookings.py
"""
Booking 훅 API

예약 생성(날짜 hold) / 취소(release) / 승인 / 거절
"""
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from vibesbnb.api.deps import CallerIdentity, require_caller
from vibesbnb.db.session import get_db
from vibesbnb.domain.models.booking import Booking
from vibesbnb.services.booking_lifecycle import BookingLifecycleService

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ============================================================
# Schemas
# ============================================================

class BookingCreateRequest(BaseModel):
    property_id: str
    check_in: date
    check_out: date
    unit_ids: list[str] = Field(default_factory=list)
    guest_name: Optional[str] = None


class BookingResponse(BaseModel):
    """예약 응답"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    status: str
    payment_status: str
    unit_ids: list[str]
    check_in: date
    check_out: date
    guest_name: Optional[str] = None
    host_approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


def _to_response(booking: Booking) -> BookingResponse:
    return BookingResponse.model_validate(booking)


# ============================================================
# Endpoints
# ============================================================

@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreateRequest,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> BookingResponse:
    """예약 생성. 날짜가 막혀 있으면 409"""
    booking = BookingLifecycleService(db).create(
        property_id=request.property_id,
        guest_id=caller.user_id,
        check_in=request.check_in,
        check_out=request.check_out,
        unit_ids=request.unit_ids,
        guest_name=request.guest_name,
    )
    return _to_response(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> BookingResponse:
    """게스트 예약 취소. 날짜 해제 실패해도 취소는 성공"""
    return _to_response(BookingLifecycleService(db).cancel(booking_id, caller.user_id))


@router.post("/{booking_id}/accept", response_model=BookingResponse)
def accept_booking(
    booking_id: str,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> BookingResponse:
    """호스트 승인"""
    return _to_response(BookingLifecycleService(db).accept(booking_id, caller.user_id))


@router.post("/{booking_id}/reject", response_model=BookingResponse)
def reject_booking(
    booking_id: str,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> BookingResponse:
    """호스트 거절"""
    return _to_response(BookingLifecycleService(db).reject(booking_id, caller.user_id))
