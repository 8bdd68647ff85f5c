"""
Availability API

숙소 날짜별 가용성 조회 (공개) / 호스트 차단·해제
"""
import logging
from datetime import date, datetime
from typing import Optional, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from vibesbnb.api.deps import CallerIdentity, require_caller
from vibesbnb.db.session import get_db
from vibesbnb.services.availability_ledger import (
    AvailabilityLedger,
    HostAvailabilityEntry,
    effective_day_map,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Availability"])


# ========== DTOs ==========

class AvailabilityEntryDTO(BaseModel):
    """ledger 행 하나"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    day: date
    status: str
    source: str
    unit_id: Optional[str] = None
    source_ref: Optional[str] = None
    note: Optional[str] = None
    updated_at: Optional[datetime] = None


class AvailabilityListResponse(BaseModel):
    property_id: str
    unit_id: Optional[str] = None
    availability: list[AvailabilityEntryDTO]
    # unit_id 지정 시: 객실 행이 숙소 전체 행보다 우선한 날짜별 유효 상태
    effective: Optional[list[AvailabilityEntryDTO]] = None


class HostEntryRequest(BaseModel):
    day: date
    status: Literal["available", "blocked"]
    note: Optional[str] = Field(default=None, max_length=500)
    unit_id: Optional[str] = Field(default=None, alias="room_id")

    model_config = ConfigDict(populate_by_name=True)


class HostAvailabilityUpdateRequest(BaseModel):
    """호스트 차단/해제 요청"""
    entries: list[HostEntryRequest]


class HostAvailabilityUpdateResponse(BaseModel):
    success: bool
    blocked: int
    unblocked: int
    skipped: list[str]


# ========== Endpoints ==========

@router.get(
    "/properties/{property_id}/availability",
    response_model=AvailabilityListResponse,
)
def get_availability(
    property_id: str,
    unit_id: Optional[str] = Query(default=None, description="객실 ID (미지정 시 전체)"),
    db: Session = Depends(get_db),
) -> AvailabilityListResponse:
    """
    숙소 가용성 조회 (공개, 인증 불필요)

    행이 없는 날짜는 예약 가능.
    """
    ledger = AvailabilityLedger(db)
    entries = ledger.list_availability(property_id, unit_id)

    effective = None
    if unit_id is not None:
        by_day = effective_day_map(entries, unit_id)
        effective = [AvailabilityEntryDTO.model_validate(by_day[d]) for d in sorted(by_day)]

    return AvailabilityListResponse(
        property_id=property_id,
        unit_id=unit_id,
        availability=[AvailabilityEntryDTO.model_validate(e) for e in entries],
        effective=effective,
    )


@router.put(
    "/host/properties/{property_id}/availability",
    response_model=HostAvailabilityUpdateResponse,
)
def update_host_availability(
    property_id: str,
    request: HostAvailabilityUpdateRequest,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> HostAvailabilityUpdateResponse:
    """
    호스트 차단/해제 (호스트 전용)

    - status=available → 차단 해제 (게스트 예약은 해제되지 않음)
    - status=blocked → 호스트 차단
    """
    ledger = AvailabilityLedger(db)
    result = ledger.set_host_blocks(
        property_id,
        caller.user_id,
        [
            HostAvailabilityEntry(
                day=e.day,
                status=e.status,
                unit_id=e.unit_id,
                note=e.note,
            )
            for e in request.entries
        ],
    )
    return HostAvailabilityUpdateResponse(
        success=True,
        blocked=result.blocked,
        unblocked=result.unblocked,
        skipped=result.skipped,
    )
