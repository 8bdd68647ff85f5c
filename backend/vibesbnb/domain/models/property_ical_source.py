"""
Property iCal Source Model

호스트가 등록한 외부 캘린더(iCal) 피드
- Airbnb / Booking.com 등 외부 채널 달력
- 동기화 메타데이터 (마지막 성공 시각, 마지막 에러)
"""
from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from vibesbnb.db.base import Base


class IcalSyncStatus(str, Enum):
    """source 별 동기화 상태"""
    CREATED = "created"
    SYNCING = "syncing"
    SYNCED = "synced"
    SYNC_FAILED = "sync_failed"


class PropertyIcalSource(Base):
    __tablename__ = "property_ical_sources"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    property_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    host_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # 동기화 대상 객실 (NULL 이면 숙소 전체)
    unit_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    ical_url: Mapped[str] = mapped_column(Text, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    sync_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=IcalSyncStatus.CREATED.value
    )
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_sync_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<PropertyIcalSource id={self.id} property={self.property_id} "
            f"status={self.sync_status} active={self.is_active}>"
        )
