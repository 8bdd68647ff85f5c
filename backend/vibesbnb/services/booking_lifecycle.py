"""
Booking Lifecycle Service

예약 상태 전이 중 ledger 와 맞물리는 부분
- create: 충돌 확인 + 날짜 hold (reserve) 를 숙소 락 안에서 원자적으로
- cancel: 상태 취소 → ledger release (release 실패는 로그만, 취소는 유지)
- accept / reject: 승인 흐름. ledger 는 건드리지 않는다 (생성 시점에 이미 hold)
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from vibesbnb.core.errors import (
    AvailabilityConflictError,
    AvailabilityError,
    BookingStateError,
    ForbiddenError,
    InvalidRequestError,
    UnauthorizedError,
)
from vibesbnb.domain.models.booking import Booking, BookingStatus, PaymentStatus
from vibesbnb.repositories.booking_repository import BookingRepository
from vibesbnb.repositories.property_repository import PropertyRepository
from vibesbnb.services.availability_ledger import AvailabilityLedger
from vibesbnb.services.write_lock import property_write_lock

logger = logging.getLogger(__name__)


class BookingLifecycleService:
    def __init__(self, db: Session, ledger: Optional[AvailabilityLedger] = None):
        self.db = db
        self.ledger = ledger or AvailabilityLedger(db)
        self.bookings = BookingRepository(db)
        self.properties = PropertyRepository(db)

    def create(
        self,
        *,
        property_id: str,
        guest_id: Optional[str],
        check_in: date,
        check_out: date,
        unit_ids: Sequence[str] = (),
        guest_name: Optional[str] = None,
    ) -> Booking:
        """
        예약 생성 + 날짜 hold

        승인 대기 중에도 이중 예약이 나지 않도록 생성 시점에 reserve 한다.
        """
        if not guest_id:
            raise UnauthorizedError("User authentication required")
        if check_out <= check_in:
            raise InvalidRequestError("check_out must be after check_in")

        units = [u for u in dict.fromkeys(unit_ids) if u]

        # 숙소 조회부터 락 안에서 (충돌 확인 → reserve 를 다른 요청과 직렬화)
        with property_write_lock(property_id):
            prop = self.properties.get_or_404(property_id)
            conflicts = self.ledger.find_conflicts(property_id, units, check_in, check_out)
            if conflicts:
                days = sorted({c.day for c in conflicts})
                raise AvailabilityConflictError(
                    f"Requested dates are not available: {', '.join(d.isoformat() for d in days)}",
                    conflicts=days,
                )

            booking = self.bookings.create(
                property_id=property_id,
                guest_id=guest_id,
                host_id=prop.host_id,
                check_in=check_in,
                check_out=check_out,
                unit_ids=units,
                guest_name=guest_name,
            )
            # reserve 가 락 안에서 booking 과 함께 commit
            self.ledger.reserve(property_id, units, check_in, check_out, booking.id)

        logger.info(
            f"BOOKING: Created booking={booking.id}, property={property_id}, "
            f"{check_in} ~ {check_out}, units={units or 'ALL'}"
        )
        return booking

    def cancel(self, booking_id: str, caller_id: Optional[str]) -> Booking:
        """
        예약 취소

        - 이미 cancelled/rejected 면 BookingStateError
        - paid → refunded
        - 취소 commit 후 ledger release. release 실패는 로그만 남긴다
        """
        booking = self.bookings.get_or_404(booking_id)
        if not caller_id or booking.guest_id != caller_id:
            raise ForbiddenError("Forbidden")
        if not booking.is_active:
            raise BookingStateError("Booking already cancelled")

        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = datetime.now(timezone.utc)
        if booking.payment_status == PaymentStatus.PAID.value:
            booking.payment_status = PaymentStatus.REFUNDED.value
        self.db.commit()

        try:
            released = self.ledger.release(booking_id)
            logger.info(f"BOOKING: Cancelled booking={booking_id}, released_days={released}")
        except AvailabilityError as e:
            logger.warning(f"BOOKING: Failed to release availability booking={booking_id}: {e}")

        self.db.refresh(booking)
        return booking

    def _pending_booking_for_host(self, booking_id: str, caller_id: Optional[str]) -> Booking:
        booking = self.bookings.get_or_404(booking_id)
        if not caller_id or booking.host_id != caller_id:
            raise ForbiddenError("Forbidden")
        if booking.status != BookingStatus.PENDING_APPROVAL.value:
            raise BookingStateError("Booking is not pending approval")
        return booking

    def accept(self, booking_id: str, caller_id: Optional[str]) -> Booking:
        """호스트 승인. ledger 변경 없음"""
        booking = self._pending_booking_for_host(booking_id, caller_id)
        booking.status = BookingStatus.ACCEPTED.value
        booking.host_approved_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"BOOKING: Accepted booking={booking_id}")
        return booking

    def reject(self, booking_id: str, caller_id: Optional[str]) -> Booking:
        """호스트 거절. ledger 변경 없음"""
        booking = self._pending_booking_for_host(booking_id, caller_id)
        booking.status = BookingStatus.REJECTED.value
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"BOOKING: Rejected booking={booking_id}")
        return booking
