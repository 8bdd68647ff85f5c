"""
Booking Repository

availability 훅이 쓰는 예약 조회/생성
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from vibesbnb.core.errors import NotFoundError
from vibesbnb.domain.models.booking import Booking


class BookingRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, booking_id: str) -> Optional[Booking]:
        return self.db.get(Booking, booking_id)

    def get_or_404(self, booking_id: str) -> Booking:
        booking = self.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def create(
        self,
        *,
        property_id: str,
        guest_id: str,
        host_id: str,
        check_in: date,
        check_out: date,
        unit_ids: Optional[list[str]] = None,
        guest_name: Optional[str] = None,
    ) -> Booking:
        booking = Booking(
            property_id=property_id,
            guest_id=guest_id,
            host_id=host_id,
            check_in=check_in,
            check_out=check_out,
            unit_ids=list(unit_ids or []),
            guest_name=guest_name,
        )
        self.db.add(booking)
        self.db.flush()
        return booking
