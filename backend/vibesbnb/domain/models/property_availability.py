"""
Property Availability Model

숙소/객실/날짜별 가용성 ledger
- 행이 없으면 "예약 가능" (available 은 저장하지 않는다)
- blocked: 호스트 차단 또는 외부 iCal 동기화 차단
- booked: 게스트 예약
"""
from __future__ import annotations

from datetime import datetime, date
from enum import Enum

from sqlalchemy import String, Date, DateTime, Index, Text, ForeignKey, text
from sqlalchemy.orm import Mapped, mapped_column

from vibesbnb.db.base import Base


class AvailabilityStatus(str, Enum):
    """날짜 상태"""
    AVAILABLE = "available"  # 저장되지 않음 (행 부재 = available)
    BLOCKED = "blocked"      # 호스트/동기화 차단
    BOOKED = "booked"        # 게스트 예약


class AvailabilitySource(str, Enum):
    """행을 기록한 주체 (우선순위 + 삭제 소유권)"""
    HOST = "host"
    ICAL_SYNC = "ical_sync"
    BOOKING = "booking"


class PropertyAvailability(Base):
    """
    가용성 ledger 행

    - (property_id, unit_id, day) 당 최대 1행
    - unit_id 가 NULL 이면 숙소 전체에 적용
    - source_ref: ical_sync → iCal source id, booking → booking id
    """

    __tablename__ = "property_availability"

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
    )

    property_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    unit_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    day: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )

    source: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )

    source_ref: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )

    note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    # NULL 은 unique 비교에서 서로 다르게 취급되므로 partial unique index 2개로 자연키 보장
    __table_args__ = (
        Index(
            "uq_availability_property_unit_day",
            "property_id", "unit_id", "day",
            unique=True,
            postgresql_where=text("unit_id IS NOT NULL"),
            sqlite_where=text("unit_id IS NOT NULL"),
        ),
        Index(
            "uq_availability_property_day_no_unit",
            "property_id", "day",
            unique=True,
            postgresql_where=text("unit_id IS NULL"),
            sqlite_where=text("unit_id IS NULL"),
        ),
        Index("idx_availability_source", "source", "source_ref"),
    )

    def __repr__(self) -> str:
        return (
            f"<PropertyAvailability {self.property_id} unit={self.unit_id} "
            f"{self.day} {self.status}/{self.source}>"
        )
