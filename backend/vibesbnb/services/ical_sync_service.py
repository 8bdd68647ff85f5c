"""
iCal Sync Service

외부 캘린더 source 관리 + 동기화 오케스트레이션
- source 등록 시 즉시 1회 동기화 (실패해도 등록은 성공)
- 숙소의 활성 source 전체 수동 동기화
- 스케줄러의 source 단위 주기 동기화

source 하나당: fetch → parse → ledger.apply_sync_batch
실패 시 last_sync_error 기록, last_synced_at 유지. 다른 source 에는 영향 없음.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence
from urllib.parse import urlparse

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import ObjectDeletedError, StaleDataError

from vibesbnb.core.config import settings
from vibesbnb.core.errors import (
    AvailabilityError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
)
from vibesbnb.domain.models.property import Property
from vibesbnb.domain.models.property_ical_source import PropertyIcalSource, IcalSyncStatus
from vibesbnb.repositories.ical_source_repository import IcalSourceRepository
from vibesbnb.repositories.property_repository import PropertyRepository
from vibesbnb.services.availability_ledger import AvailabilityLedger
from vibesbnb.services.ical_fetcher import IcalFeedFetcher
from vibesbnb.services.ical_parser import ParsedEvent, parse_ical_content
from vibesbnb.services.write_lock import property_write_lock

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """source 하나의 동기화 결과"""
    source_id: str
    name: str
    success: bool
    error: Optional[str] = None
    synced_days: int = 0


def build_export_url(prop: Property) -> str:
    return (
        f"{settings.APP_URL}/api/v1/properties/{prop.id}/ical/export"
        f"?token={prop.ical_export_token}"
    )


class IcalSyncService:
    """
    iCal 동기화 서비스

    - list_sources / add_source / delete_source: 호스트 전용 source 관리
    - sync_property: 숙소 활성 source 전체 동기화
    - sync_source: source 하나 동기화
    """

    def __init__(
        self,
        db: Session,
        fetcher: Optional[IcalFeedFetcher] = None,
        ledger: Optional[AvailabilityLedger] = None,
    ):
        self.db = db
        self.fetcher = fetcher or IcalFeedFetcher()
        self.ledger = ledger or AvailabilityLedger(db)
        self.properties = PropertyRepository(db)
        self.sources = IcalSourceRepository(db)

    # ========== source 관리 ==========

    def list_sources(
        self,
        property_id: str,
        caller_id: Optional[str],
    ) -> tuple[str, Sequence[PropertyIcalSource]]:
        """export URL + 등록된 source 목록"""
        prop = self.properties.ensure_host_ownership(property_id, caller_id)
        return build_export_url(prop), self.sources.list_for_property(property_id)

    async def add_source(
        self,
        property_id: str,
        caller_id: Optional[str],
        *,
        name: str,
        ical_url: str,
        unit_id: Optional[str] = None,
    ) -> tuple[PropertyIcalSource, SyncResult]:
        """
        source 등록 후 즉시 동기화 (best-effort)

        동기화 실패는 source 에 기록만 하고 등록 자체는 성공으로 반환한다.
        """
        self.properties.ensure_host_ownership(property_id, caller_id)

        name = (name or "").strip()
        ical_url = (ical_url or "").strip()
        if not name or not ical_url:
            raise InvalidRequestError("Name and iCal URL are required")

        parsed = urlparse(ical_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidRequestError("Invalid iCal URL format")

        source = self.sources.create(
            property_id=property_id,
            host_id=caller_id,
            name=name,
            ical_url=ical_url,
            unit_id=unit_id,
        )
        self.db.commit()
        logger.info(f"ICAL_SYNC: Source created property={property_id}, source={source.id}")

        result = await self.sync_source(source)
        if not result.success:
            logger.warning(f"ICAL_SYNC: Initial sync failed source={source.id}: {result.error}")

        self.db.refresh(source)
        return source, result

    def delete_source(
        self,
        property_id: str,
        caller_id: Optional[str],
        source_id: str,
    ) -> int:
        """
        source 삭제 + 그 source 가 만든 ledger 행 정리

        숙소 락 안에서 한 트랜잭션으로 처리한다. 진행 중인 동기화는
        락을 잡은 뒤 source 존재를 다시 확인하므로 삭제된 source 로 행을 남기지 않는다.

        Returns:
            정리된 ledger 행 수
        """
        self.properties.ensure_host_ownership(property_id, caller_id)

        with property_write_lock(property_id):
            source = self.sources.get_by_id(source_id)
            if source is None or source.property_id != property_id:
                raise NotFoundError("iCal source not found")

            try:
                self.sources.delete(source)
                # source 삭제(flush)와 행 정리를 ledger 가 함께 commit
                removed = self.ledger.remove_source_rows(property_id, source_id)
            except AvailabilityError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"ICAL_SYNC: Failed to delete source={source_id}: {e}")
                raise PersistenceError(f"Failed to delete iCal source: {e}") from e

        logger.info(
            f"ICAL_SYNC: Source deleted property={property_id}, source={source_id}, "
            f"released_days={removed}"
        )
        return removed

    # ========== 동기화 ==========

    async def sync_property(
        self,
        property_id: str,
        caller_id: Optional[str],
    ) -> list[SyncResult]:
        """숙소의 활성 source 전체 동기화 (source 별로 독립)"""
        self.properties.ensure_host_ownership(property_id, caller_id)

        source_ids = [
            s.id for s in self.sources.list_for_property(property_id, active_only=True)
        ]
        results = []
        for source_id in source_ids:
            # 앞선 source 동기화 중 삭제된 source 는 건너뛴다
            result = await self.sync_source_by_id(source_id)
            if result is not None:
                results.append(result)

        ok = sum(1 for r in results if r.success)
        logger.info(
            f"ICAL_SYNC: Property sync done property={property_id}, "
            f"sources={len(results)}, success={ok}, failed={len(results) - ok}"
        )
        return results

    async def sync_source_by_id(self, source_id: str) -> Optional[SyncResult]:
        """삭제되었거나 비활성인 source 는 건너뛴다"""
        source = self.sources.get_by_id(source_id)
        if source is None or not source.is_active:
            logger.info(f"ICAL_SYNC: Skipping missing/inactive source={source_id}")
            return None
        return await self.sync_source(source)

    async def sync_source(self, source: PropertyIcalSource) -> SyncResult:
        """
        source 하나 동기화

        created/synced/sync_failed → syncing → synced | sync_failed
        동기화 도중 source 가 삭제되면 아무것도 남기지 않고 실패 결과만 반환한다.
        """
        source_id = source.id
        name = source.name
        property_id = source.property_id
        unit_id = source.unit_id
        ical_url = source.ical_url

        try:
            source.sync_status = IcalSyncStatus.SYNCING.value
            self.db.commit()

            content = await self.fetcher.fetch(ical_url)
            events = parse_ical_content(content)
            # 숙소 락은 threading 락이라 이벤트 루프 스레드에서 잡지 않는다
            synced_days = await asyncio.to_thread(
                self._apply_batch, property_id, unit_id, source_id, events
            )

            source.last_synced_at = datetime.now(timezone.utc)
            source.last_sync_error = None
            source.sync_status = IcalSyncStatus.SYNCED.value
            self.db.commit()
        except (NotFoundError, StaleDataError, ObjectDeletedError):
            self.db.rollback()
            logger.info(f"ICAL_SYNC: Source deleted during sync, nothing applied source={source_id}")
            return SyncResult(
                source_id=source_id, name=name, success=False, error="iCal source not found"
            )
        except AvailabilityError as e:
            self._record_failure(source, source_id, e.message)
            return SyncResult(source_id=source_id, name=name, success=False, error=e.message)
        except Exception as e:
            logger.exception(f"ICAL_SYNC: Unexpected error syncing source={source_id}")
            message = str(e) or e.__class__.__name__
            self._record_failure(source, source_id, message)
            return SyncResult(source_id=source_id, name=name, success=False, error=message)

        logger.info(
            f"ICAL_SYNC: Synced source={source_id}, events={len(events)}, days={synced_days}"
        )
        return SyncResult(source_id=source_id, name=name, success=True, synced_days=synced_days)

    def _apply_batch(
        self,
        property_id: str,
        unit_id: Optional[str],
        source_id: str,
        events: Sequence[ParsedEvent],
    ) -> int:
        """source 존재 확인과 ledger 반영을 같은 숙소 락 안에서 (delete_source 와 직렬화)"""
        with property_write_lock(property_id):
            if not self.sources.is_active(source_id):
                raise NotFoundError("iCal source not found")
            return self.ledger.apply_sync_batch(property_id, unit_id, source_id, events)

    def _record_failure(self, source: PropertyIcalSource, source_id: str, message: str) -> None:
        """실패 기록. last_synced_at 은 건드리지 않는다"""
        self.db.rollback()
        try:
            source.last_sync_error = message
            source.sync_status = IcalSyncStatus.SYNC_FAILED.value
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"ICAL_SYNC: Failed to record sync error source={source_id}: {e}")
        logger.warning(f"ICAL_SYNC: Sync failed source={source_id}: {message}")
