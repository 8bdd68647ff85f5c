# backend/vibesbnb/domain/models/__init__.py

from vibesbnb.db.base import Base

from .property import Property
from .property_availability import (
    PropertyAvailability,
    AvailabilityStatus,
    AvailabilitySource,
)
from .property_ical_source import PropertyIcalSource, IcalSyncStatus
from .booking import Booking, BookingStatus, PaymentStatus

__all__ = [
    "Base",
    "Property",
    "PropertyAvailability",
    "AvailabilityStatus",
    "AvailabilitySource",
    "PropertyIcalSource",
    "IcalSyncStatus",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
]
