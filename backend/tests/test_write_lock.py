import threading
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

import vibesbnb.domain.models  # noqa: F401
from vibesbnb.core.errors import AvailabilityConflictError
from vibesbnb.db.base import Base
from vibesbnb.db.session import build_engine
from vibesbnb.domain.models.booking import Booking
from vibesbnb.repositories.property_repository import PropertyRepository
from vibesbnb.services.availability_ledger import AvailabilityLedger
from vibesbnb.services.booking_lifecycle import BookingLifecycleService
from vibesbnb.services.write_lock import property_write_lock

from conftest import GUEST_ID, HOST_ID


def test_lock_is_reentrant_and_per_property():
    other_thread_got_it = []

    def try_acquire(property_id: str):
        lock_free = threading.Event()

        def worker():
            with property_write_lock(property_id):
                lock_free.set()

        t = threading.Thread(target=worker)
        t.start()
        other_thread_got_it.append(lock_free.wait(0.2))
        return t

    with property_write_lock("prop-a"):
        with property_write_lock("prop-a"):
            blocked = try_acquire("prop-a")
            free = try_acquire("prop-b")

    blocked.join(5)
    free.join(5)
    assert other_thread_got_it == [False, True]


def test_concurrent_overlapping_bookings_only_one_wins(tmp_path):
    engine = build_engine(
        f"sqlite:///{tmp_path / 'vibesbnb.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with session_factory() as session:
        property_id = PropertyRepository(session).create(host_id=HOST_ID, name="Sunny Loft").id
        session.commit()

    barrier = threading.Barrier(2)
    outcomes: list[str] = []

    def create_booking(check_in: date, check_out: date):
        session = session_factory()
        try:
            barrier.wait(5)
            BookingLifecycleService(session).create(
                property_id=property_id,
                guest_id=GUEST_ID,
                check_in=check_in,
                check_out=check_out,
            )
            outcomes.append("created")
        except AvailabilityConflictError:
            outcomes.append("conflict")
        finally:
            session.close()

    threads = [
        threading.Thread(target=create_booking, args=(date(2025, 8, 1), date(2025, 8, 4))),
        threading.Thread(target=create_booking, args=(date(2025, 8, 3), date(2025, 8, 6))),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    try:
        with session_factory() as session:
            bookings = session.execute(
                select(Booking).where(Booking.property_id == property_id)
            ).scalars().all()
            rows = AvailabilityLedger(session).list_availability(property_id)

            assert sorted(outcomes) == ["conflict", "created"]
            assert len(bookings) == 1
            assert {r.source_ref for r in rows} == {bookings[0].id}
            assert len(rows) == 3
    finally:
        engine.dispose()
