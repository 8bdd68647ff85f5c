"""
Booking: availability 엔진이 필요로 하는 최소 예약 레코드

- 예약 CRUD / 결제는 외부 책임
- 여기서는 reserve/release 훅과 상태 전이에 필요한 필드만 가진다
"""
from __future__ import annotations

import uuid
from datetime import datetime, date
from enum import Enum
from typing import Optional

from sqlalchemy import String, Date, DateTime, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from vibesbnb.db.base import Base


class BookingStatus(str, Enum):
    """예약 상태"""
    PENDING_APPROVAL = "pending_approval"  # 호스트 승인 대기 (날짜는 이미 hold)
    ACCEPTED = "accepted"                  # 승인됨, 결제 대기
    CONFIRMED = "confirmed"                # 결제 완료
    CANCELLED = "cancelled"                # 취소됨
    REJECTED = "rejected"                  # 호스트 거절


class PaymentStatus(str, Enum):
    """결제 상태"""
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


INACTIVE_BOOKING_STATUSES = (
    BookingStatus.CANCELLED.value,
    BookingStatus.REJECTED.value,
)


class Booking(Base):
    __tablename__ = "bookings"

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
    guest_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    host_id: Mapped[str] = mapped_column(String(64), nullable=False)
    guest_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # 선택된 객실 목록 (빈 리스트면 숙소 전체)
    unit_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)  # exclusive

    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=BookingStatus.PENDING_APPROVAL.value
    )
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PaymentStatus.PENDING.value
    )

    host_approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_BOOKING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, property={self.property_id}, "
            f"status={self.status}, check_in={self.check_in}, check_out={self.check_out})>"
        )
