"""
iCal Export Service

숙소의 차단/예약 날짜를 iCal 피드로 내보내기
- export token 검증 (불일치 시 ledger 조회 없이 거절)
- 연속된 같은 상태 날짜를 구간으로 압축
- 구간 하나당 VEVENT 하나, UID 는 (숙소, 시작일, 순번) 으로 결정적
"""
from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, Optional

from icalendar import Calendar, Event
from sqlalchemy.orm import Session

from vibesbnb.core.config import settings
from vibesbnb.core.errors import UnauthorizedError
from vibesbnb.domain.models.property import Property
from vibesbnb.domain.models.property_availability import AvailabilityStatus, PropertyAvailability
from vibesbnb.repositories.property_repository import PropertyRepository
from vibesbnb.services.availability_ledger import AvailabilityLedger
from vibesbnb.services.calendar_compressor import ONE_DAY, DateRange, compress_days

logger = logging.getLogger(__name__)

_SUMMARY_BY_STATUS = {
    AvailabilityStatus.BOOKED.value: "Booked",
    AvailabilityStatus.BLOCKED.value: "Blocked",
}
_DESCRIPTION_BY_STATUS = {
    AvailabilityStatus.BOOKED.value: "Reserved by guest",
    AvailabilityStatus.BLOCKED.value: "Blocked by host",
}


@dataclass(frozen=True)
class ExportedCalendar:
    filename: str
    content: str


def export_filename(property_name: str) -> str:
    """'Sunny Loft #2' → 'Sunny_Loft__2_calendar.ics'"""
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', property_name)}_calendar.ics"


def event_uid(property_id: str, range_start: date, index: int) -> str:
    return f"{property_id}-{range_start.isoformat()}-{index}@{settings.ICAL_UID_DOMAIN}"


def collapse_unit_statuses(entries: Iterable[PropertyAvailability]) -> list[tuple]:
    """
    숙소 단위 피드이므로 날짜당 상태 하나로 합친다.
    객실별로 상태가 다르면 booked 가 우선.
    """
    by_day: dict = {}
    for entry in entries:
        if by_day.get(entry.day) == AvailabilityStatus.BOOKED.value:
            continue
        by_day[entry.day] = entry.status
    return list(by_day.items())


def render_calendar(
    prop: Property,
    ranges: list[DateRange],
    now: Optional[datetime] = None,
) -> str:
    """압축된 구간 → VCALENDAR 텍스트. DTEND 는 inclusive end + 1일 (exclusive)"""
    stamp = now or datetime.now(timezone.utc)

    cal = Calendar()
    cal.add("prodid", settings.ICAL_EXPORT_PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", prop.name)
    cal.add("x-wr-timezone", "UTC")

    for index, date_range in enumerate(ranges):
        event = Event()
        event.add("uid", event_uid(prop.id, date_range.start, index))
        event.add("dtstart", date_range.start)
        event.add("dtend", date_range.end + ONE_DAY)
        event.add("dtstamp", stamp)
        event.add("summary", _SUMMARY_BY_STATUS.get(date_range.status, "Blocked"))
        event.add("description", _DESCRIPTION_BY_STATUS.get(date_range.status, "Unavailable"))
        event.add("status", "CONFIRMED")
        event.add("transp", "OPAQUE")
        cal.add_component(event)

    return cal.to_ical().decode("utf-8")


class IcalExportService:
    def __init__(self, db: Session, ledger: Optional[AvailabilityLedger] = None):
        self.db = db
        self.ledger = ledger or AvailabilityLedger(db)
        self.properties = PropertyRepository(db)

    def export_feed(self, property_id: str, token: Optional[str]) -> ExportedCalendar:
        """
        token 검증 후 숙소 iCal 피드 생성

        Raises:
            UnauthorizedError: token 누락/불일치 (ledger 조회 전)
            NotFoundError: 숙소 없음
        """
        if not token:
            raise UnauthorizedError("Token required")

        prop = self.properties.get_or_404(property_id)
        if not secrets.compare_digest(prop.ical_export_token.encode("utf-8"), token.encode("utf-8")):
            logger.warning(f"ICAL_EXPORT: Invalid token for property={property_id}")
            raise UnauthorizedError("Invalid token")

        entries = self.ledger.list_unavailable(property_id)
        ranges = compress_days(collapse_unit_statuses(entries))

        logger.info(
            f"ICAL_EXPORT: Exported property={property_id}, "
            f"days={len(entries)}, events={len(ranges)}"
        )
        return ExportedCalendar(
            filename=export_filename(prop.name),
            content=render_calendar(prop, ranges),
        )
