"""
Availability Ledger

숙소/객실/날짜별 가용성의 단일 진실 공급원 (single source of truth)
- list: 공개 조회 (인증 불필요)
- set_host_blocks: 호스트 수동 차단/해제
- reserve / release: 예약 훅
- apply_sync_batch: 외부 iCal 동기화 결과 반영

모든 변경은 숙소 단위 쓰기 락 안에서 수행되고, 락을 쥔 채로 commit 한다.
행 단위 실패는 SAVEPOINT 로 격리해서 로그만 남기고 나머지는 계속 진행한다.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterable, Iterator, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vibesbnb.core.config import settings
from vibesbnb.core.errors import PersistenceError
from vibesbnb.domain.models.property_availability import (
    PropertyAvailability,
    AvailabilityStatus,
    AvailabilitySource,
)
from vibesbnb.repositories.property_repository import PropertyRepository
from vibesbnb.services.calendar_compressor import iter_days
from vibesbnb.services.ical_parser import ParsedEvent
from vibesbnb.services.write_lock import property_write_lock

logger = logging.getLogger(__name__)

UNAVAILABLE_STATUSES = (
    AvailabilityStatus.BLOCKED.value,
    AvailabilityStatus.BOOKED.value,
)


@dataclass
class HostAvailabilityEntry:
    """호스트가 보낸 한 날짜의 상태 (available 또는 blocked)"""
    day: date
    status: str
    unit_id: Optional[str] = None
    note: Optional[str] = None


@dataclass
class HostBlockResult:
    blocked: int = 0
    unblocked: int = 0
    skipped: list[str] = field(default_factory=list)


def _unit_clause(unit_id: Optional[str]):
    if unit_id is None:
        return PropertyAvailability.unit_id.is_(None)
    return PropertyAvailability.unit_id == unit_id


def effective_day_map(
    entries: Iterable[PropertyAvailability],
    unit_id: Optional[str],
) -> dict[date, PropertyAvailability]:
    """
    객실 기준 날짜별 유효 상태.
    같은 날 객실 행과 숙소 전체(NULL) 행이 있으면 객실 행이 우선한다.
    """
    result: dict[date, PropertyAvailability] = {}
    for entry in entries:
        if entry.unit_id is not None and entry.unit_id != unit_id:
            continue
        current = result.get(entry.day)
        if current is None or (current.unit_id is None and entry.unit_id is not None):
            result[entry.day] = entry
    return result


class AvailabilityLedger:
    """
    가용성 ledger 서비스

    - "available" 은 행이 없는 상태로 표현한다 (available 행을 채우지 않는다)
    - booking / host 행은 iCal 동기화보다 우선한다
    """

    def __init__(self, db: Session, max_days_per_event: Optional[int] = None):
        self.db = db
        self.max_days_per_event = max_days_per_event or settings.ICAL_MAX_DAYS_PER_EVENT

    # ========== 내부 헬퍼 ==========

    @contextmanager
    def _write(self, property_id: str) -> Iterator[None]:
        """숙소 락 → 변경 → commit. SQL 실패는 PersistenceError"""
        with property_write_lock(property_id):
            try:
                yield
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"LEDGER: Write failed for property={property_id}: {e}")
                raise PersistenceError(f"Failed to update availability: {e}") from e
            except Exception:
                self.db.rollback()
                raise

    def _apply_row(self, action: Callable[[], None], description: str) -> bool:
        """한 행 단위 변경을 SAVEPOINT 안에서 실행. 실패 시 로그 후 False"""
        try:
            with self.db.begin_nested():
                action()
            return True
        except SQLAlchemyError as e:
            logger.warning(f"LEDGER: Row update failed ({description}): {e}")
            return False

    def _find_row(
        self,
        property_id: str,
        unit_id: Optional[str],
        day: date,
    ) -> Optional[PropertyAvailability]:
        stmt = select(PropertyAvailability).where(
            PropertyAvailability.property_id == property_id,
            _unit_clause(unit_id),
            PropertyAvailability.day == day,
        )
        return self.db.execute(stmt).scalars().first()

    # ========== 조회 ==========

    def list_availability(
        self,
        property_id: str,
        unit_id: Optional[str] = None,
    ) -> list[PropertyAvailability]:
        """
        숙소의 모든 가용성 행 조회 (읽기 전용)

        Args:
            property_id: 숙소 ID
            unit_id: 지정 시 해당 객실 행 + 숙소 전체(NULL) 행만
        """
        stmt = select(PropertyAvailability).where(
            PropertyAvailability.property_id == property_id,
        )
        if unit_id is not None:
            stmt = stmt.where(
                (PropertyAvailability.unit_id == unit_id)
                | PropertyAvailability.unit_id.is_(None)
            )
        stmt = stmt.order_by(PropertyAvailability.day, PropertyAvailability.unit_id)
        return list(self.db.execute(stmt).scalars().all())

    def list_unavailable(self, property_id: str) -> list[PropertyAvailability]:
        """export 용: blocked / booked 행만"""
        stmt = (
            select(PropertyAvailability)
            .where(
                PropertyAvailability.property_id == property_id,
                PropertyAvailability.status.in_(UNAVAILABLE_STATUSES),
            )
            .order_by(PropertyAvailability.day)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_conflicts(
        self,
        property_id: str,
        unit_ids: Sequence[str],
        check_in: date,
        check_out: date,
    ) -> list[PropertyAvailability]:
        """
        [check_in, check_out) 구간에 이미 막혀 있는 행

        - 객실 지정: 해당 객실 행 + 숙소 전체(NULL) 행
        - 객실 미지정(숙소 전체 예약): 모든 행
        """
        stmt = select(PropertyAvailability).where(
            PropertyAvailability.property_id == property_id,
            PropertyAvailability.day >= check_in,
            PropertyAvailability.day < check_out,
        )
        if unit_ids:
            stmt = stmt.where(
                PropertyAvailability.unit_id.in_(list(unit_ids))
                | PropertyAvailability.unit_id.is_(None)
            )
        stmt = stmt.order_by(PropertyAvailability.day)
        return list(self.db.execute(stmt).scalars().all())

    # ========== 호스트 차단 ==========

    def set_host_blocks(
        self,
        property_id: str,
        caller_id: Optional[str],
        entries: Sequence[HostAvailabilityEntry],
    ) -> HostBlockResult:
        """
        호스트 수동 차단/해제

        - 권한 체크 실패 시 아무것도 적용하지 않는다
        - available → 해당 (unit, day) 의 blocked 행 삭제 (booked 행은 유지)
        - blocked → source=host 로 upsert (booked 행은 덮어쓰지 않음)
        """
        PropertyRepository(self.db).ensure_host_ownership(property_id, caller_id)

        result = HostBlockResult()
        deletions: dict[Optional[str], list[date]] = {}
        upserts: list[HostAvailabilityEntry] = []

        for entry in entries:
            if entry.status == AvailabilityStatus.AVAILABLE.value:
                deletions.setdefault(entry.unit_id, []).append(entry.day)
            elif entry.status == AvailabilityStatus.BLOCKED.value:
                upserts.append(entry)
            else:
                result.skipped.append(f"{entry.day}: unsupported status {entry.status}")

        with self._write(property_id):
            self._apply_host_upserts(property_id, upserts, result)
            self._apply_host_deletions(property_id, deletions, result)

        logger.info(
            f"LEDGER: Host blocks property={property_id}, "
            f"blocked={result.blocked}, unblocked={result.unblocked}, skipped={len(result.skipped)}"
        )
        return result

    def _apply_host_upserts(
        self,
        property_id: str,
        upserts: list[HostAvailabilityEntry],
        result: HostBlockResult,
    ) -> None:
        if not upserts:
            return

        # 한 번에 기존 행 조회
        days = sorted({e.day for e in upserts})
        existing_rows = self.db.execute(
            select(PropertyAvailability).where(
                PropertyAvailability.property_id == property_id,
                PropertyAvailability.day.in_(days),
            )
        ).scalars().all()
        existing = {(row.unit_id, row.day): row for row in existing_rows}

        for entry in upserts:
            row = existing.get((entry.unit_id, entry.day))

            if row is not None and row.status == AvailabilityStatus.BOOKED.value:
                result.skipped.append(f"{entry.day}: booked by guest")
                continue

            def _upsert(entry=entry, row=row):
                if row is not None:
                    row.status = AvailabilityStatus.BLOCKED.value
                    row.source = AvailabilitySource.HOST.value
                    row.source_ref = None
                    row.note = entry.note
                else:
                    new_row = PropertyAvailability(
                        property_id=property_id,
                        unit_id=entry.unit_id,
                        day=entry.day,
                        status=AvailabilityStatus.BLOCKED.value,
                        source=AvailabilitySource.HOST.value,
                        note=entry.note,
                    )
                    self.db.add(new_row)
                    existing[(entry.unit_id, entry.day)] = new_row

            if self._apply_row(_upsert, f"block {entry.unit_id}/{entry.day}"):
                result.blocked += 1
            else:
                result.skipped.append(f"{entry.day}: storage error")

    def _apply_host_deletions(
        self,
        property_id: str,
        deletions: dict[Optional[str], list[date]],
        result: HostBlockResult,
    ) -> None:
        # 객실 단위로 묶어서 DELETE 1회씩
        for unit_id, days in deletions.items():
            stmt = delete(PropertyAvailability).where(
                PropertyAvailability.property_id == property_id,
                _unit_clause(unit_id),
                PropertyAvailability.day.in_(days),
                PropertyAvailability.status == AvailabilityStatus.BLOCKED.value,
            )
            try:
                with self.db.begin_nested():
                    deleted = self.db.execute(stmt).rowcount
                result.unblocked += deleted or 0
            except SQLAlchemyError as e:
                logger.warning(
                    f"LEDGER: Failed to unblock property={property_id} unit={unit_id}: {e}"
                )
                result.skipped.extend(f"{d}: storage error" for d in days)

    # ========== 예약 ==========

    def reserve(
        self,
        property_id: str,
        unit_ids: Sequence[str],
        check_in: date,
        check_out: date,
        booking_id: str,
    ) -> int:
        """
        [check_in, check_out) 의 모든 날짜를 booked 로 기록

        충돌 검사는 하지 않는다 (예약 생성 흐름에서 find_conflicts 로 먼저 확인)

        Returns:
            기록된 행 수
        """
        targets: list[Optional[str]] = list(unit_ids) or [None]
        inserted = 0

        with self._write(property_id):
            for unit_id in targets:
                for day in iter_days(check_in, check_out):

                    def _insert(unit_id=unit_id, day=day):
                        self.db.add(PropertyAvailability(
                            property_id=property_id,
                            unit_id=unit_id,
                            day=day,
                            status=AvailabilityStatus.BOOKED.value,
                            source=AvailabilitySource.BOOKING.value,
                            source_ref=booking_id,
                        ))

                    if self._apply_row(_insert, f"reserve {booking_id} {unit_id}/{day}"):
                        inserted += 1

        logger.info(
            f"LEDGER: Reserved booking={booking_id}, property={property_id}, "
            f"units={targets}, days={inserted}"
        )
        return inserted

    def release(self, booking_id: str) -> int:
        """
        예약이 잡아둔 모든 행 삭제 (숙소/객실/날짜 무관). 멱등.

        Returns:
            삭제된 행 수
        """
        property_ids = self.db.execute(
            select(PropertyAvailability.property_id)
            .where(
                PropertyAvailability.source == AvailabilitySource.BOOKING.value,
                PropertyAvailability.source_ref == booking_id,
            )
            .distinct()
        ).scalars().all()

        released = 0
        for property_id in sorted(property_ids):
            with self._write(property_id):
                released += self.db.execute(
                    delete(PropertyAvailability).where(
                        PropertyAvailability.property_id == property_id,
                        PropertyAvailability.source == AvailabilitySource.BOOKING.value,
                        PropertyAvailability.source_ref == booking_id,
                    )
                ).rowcount or 0

        logger.info(f"LEDGER: Released booking={booking_id}, rows={released}")
        return released

    # ========== iCal 동기화 ==========

    def _event_days(self, event: ParsedEvent) -> list[date]:
        end_date = event.end_date
        max_end_date = event.start_date + timedelta(days=self.max_days_per_event)
        if end_date > max_end_date:
            logger.warning(
                f"LEDGER: Event too long, truncating: "
                f"{event.start_date} ~ {end_date} -> {event.start_date} ~ {max_end_date}"
            )
            end_date = max_end_date
        return list(iter_days(event.start_date, end_date))

    def apply_sync_batch(
        self,
        property_id: str,
        unit_id: Optional[str],
        source_ref: str,
        events: Sequence[ParsedEvent],
    ) -> int:
        """
        외부 캘린더 동기화 결과 반영

        1. 이 source 가 만든 기존 ical_sync 행 전부 삭제 (외부에서 사라진 날짜 해제)
        2. 이벤트를 날짜로 펼쳐서, 이미 행이 있는 날(출처 무관)은 건너뛰고 나머지 blocked 삽입

        Returns:
            새로 삽입된 날짜 수
        """
        inserted = 0
        skipped = 0

        with self._write(property_id):
            removed = self.db.execute(
                delete(PropertyAvailability).where(
                    PropertyAvailability.property_id == property_id,
                    PropertyAvailability.source == AvailabilitySource.ICAL_SYNC.value,
                    PropertyAvailability.source_ref == source_ref,
                )
            ).rowcount or 0
            self.db.flush()

            for event in events:
                for day in self._event_days(event):
                    if self._find_row(property_id, unit_id, day) is not None:
                        skipped += 1
                        continue

                    def _insert(day=day, event=event):
                        self.db.add(PropertyAvailability(
                            property_id=property_id,
                            unit_id=unit_id,
                            day=day,
                            status=AvailabilityStatus.BLOCKED.value,
                            source=AvailabilitySource.ICAL_SYNC.value,
                            source_ref=source_ref,
                            note=event.summary or "External booking",
                        ))

                    if self._apply_row(_insert, f"sync {source_ref} {unit_id}/{day}"):
                        inserted += 1

        logger.info(
            f"LEDGER: Sync batch property={property_id}, source={source_ref}, "
            f"removed={removed}, inserted={inserted}, skipped_existing={skipped}"
        )
        return inserted

    def remove_source_rows(self, property_id: str, source_ref: str) -> int:
        """iCal source 삭제 시 그 source 가 만든 행 정리"""
        with self._write(property_id):
            removed = self.db.execute(
                delete(PropertyAvailability).where(
                    PropertyAvailability.property_id == property_id,
                    PropertyAvailability.source == AvailabilitySource.ICAL_SYNC.value,
                    PropertyAvailability.source_ref == source_ref,
                )
            ).rowcount or 0

        logger.info(f"LEDGER: Removed source rows source={source_ref}, rows={removed}")
        return removed
