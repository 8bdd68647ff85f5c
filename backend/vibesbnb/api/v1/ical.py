"""
iCal API

- 호스트: 외부 캘린더 source 등록/조회/삭제, 전체 동기화
- 공개: token 기반 iCal export 피드
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from vibesbnb.api.deps import CallerIdentity, require_caller
from vibesbnb.db.session import get_db
from vibesbnb.services.ical_export_service import IcalExportService
from vibesbnb.services.ical_sync_service import IcalSyncService, SyncResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["iCal"])


# ========== DTOs ==========

class IcalSourceDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    unit_id: Optional[str] = None
    name: str
    ical_url: str
    is_active: bool
    sync_status: str
    last_synced_at: Optional[datetime] = None
    last_sync_error: Optional[str] = None
    created_at: datetime


class IcalSourcesResponse(BaseModel):
    export_url: str
    sources: list[IcalSourceDTO]


class IcalSourceCreateRequest(BaseModel):
    name: str
    ical_url: str
    unit_id: Optional[str] = None


class SyncResultDTO(BaseModel):
    id: str
    name: str
    success: bool
    error: Optional[str] = None
    synced_days: int = 0


class IcalSourceCreateResponse(BaseModel):
    source: IcalSourceDTO
    initial_sync: SyncResultDTO


class IcalSyncResponse(BaseModel):
    results: list[SyncResultDTO]


def _to_result_dto(result: SyncResult) -> SyncResultDTO:
    return SyncResultDTO(
        id=result.source_id,
        name=result.name,
        success=result.success,
        error=result.error,
        synced_days=result.synced_days,
    )


# ========== Host Endpoints ==========

@router.get("/host/properties/{property_id}/ical", response_model=IcalSourcesResponse)
def list_ical_sources(
    property_id: str,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> IcalSourcesResponse:
    """등록된 외부 캘린더 + export URL 조회"""
    export_url, sources = IcalSyncService(db).list_sources(property_id, caller.user_id)
    return IcalSourcesResponse(
        export_url=export_url,
        sources=[IcalSourceDTO.model_validate(s) for s in sources],
    )


@router.post(
    "/host/properties/{property_id}/ical",
    response_model=IcalSourceCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_ical_source(
    property_id: str,
    request: IcalSourceCreateRequest,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> IcalSourceCreateResponse:
    """
    외부 캘린더 등록 + 즉시 동기화

    초기 동기화가 실패해도 등록은 성공 (source 에 에러 기록)
    """
    source, result = await IcalSyncService(db).add_source(
        property_id,
        caller.user_id,
        name=request.name,
        ical_url=request.ical_url,
        unit_id=request.unit_id,
    )
    return IcalSourceCreateResponse(
        source=IcalSourceDTO.model_validate(source),
        initial_sync=_to_result_dto(result),
    )


@router.delete("/host/properties/{property_id}/ical/{source_id}")
def delete_ical_source(
    property_id: str,
    source_id: str,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
):
    """외부 캘린더 삭제 (해당 source 가 막은 날짜도 해제)"""
    released = IcalSyncService(db).delete_source(property_id, caller.user_id, source_id)
    return {"success": True, "released_days": released}


@router.post("/host/properties/{property_id}/ical/sync", response_model=IcalSyncResponse)
async def sync_ical_sources(
    property_id: str,
    caller: CallerIdentity = Depends(require_caller),
    db: Session = Depends(get_db),
) -> IcalSyncResponse:
    """숙소의 활성 외부 캘린더 전체 동기화. source 별 결과 반환"""
    results = await IcalSyncService(db).sync_property(property_id, caller.user_id)
    return IcalSyncResponse(results=[_to_result_dto(r) for r in results])


# ========== Public Export ==========

@router.get("/properties/{property_id}/ical/export")
def export_ical(
    property_id: str,
    token: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
) -> Response:
    """
    iCal export 피드 (token 인증, 로그인 불필요)

    Airbnb / Google Calendar 등에서 구독하는 URL
    """
    exported = IcalExportService(db).export_feed(property_id, token)
    return Response(
        content=exported.content,
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{exported.filename}"',
        },
    )
