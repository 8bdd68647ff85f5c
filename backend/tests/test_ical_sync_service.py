import asyncio
import threading
from datetime import date

import pytest

from vibesbnb.core.config import settings
from vibesbnb.core.errors import (
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
    SyncFetchError,
)
from vibesbnb.repositories.ical_source_repository import IcalSourceRepository
from vibesbnb.repositories.property_repository import PropertyRepository
from vibesbnb.services.availability_ledger import AvailabilityLedger
from vibesbnb.services.ical_sync_service import IcalSyncService, build_export_url
from vibesbnb.services.write_lock import property_write_lock

from conftest import HOST_ID


def feed(*ranges: tuple[str, str]) -> str:
    events = "".join(
        "BEGIN:VEVENT\r\n"
        f"DTSTART;VALUE=DATE:{start}\r\n"
        f"DTEND;VALUE=DATE:{end}\r\n"
        "SUMMARY:Reserved\r\n"
        "END:VEVENT\r\n"
        for start, end in ranges
    )
    return f"BEGIN:VCALENDAR\r\nVERSION:2.0\r\n{events}END:VCALENDAR\r\n"


class FakeFetcher:
    """url → 피드 문자열 또는 예외"""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response


AIRBNB_URL = "https://www.airbnb.com/calendar/ical/123.ics"
BOOKING_URL = "https://admin.booking.com/hotel/ical/456.ics"


def make_service(db, responses: dict) -> IcalSyncService:
    return IcalSyncService(db, fetcher=FakeFetcher(responses))


def test_add_source_syncs_immediately(db, prop):
    service = make_service(db, {AIRBNB_URL: feed(("20250310", "20250312"))})

    source, result = asyncio.run(
        service.add_source(prop.id, HOST_ID, name=" Airbnb ", ical_url=AIRBNB_URL)
    )

    rows = AvailabilityLedger(db).list_availability(prop.id)
    assert source.name == "Airbnb"
    assert source.sync_status == "synced"
    assert source.last_synced_at is not None
    assert source.last_sync_error is None
    assert result.success and result.synced_days == 2
    assert [(r.day, r.source_ref) for r in rows] == [
        (date(2025, 3, 10), source.id),
        (date(2025, 3, 11), source.id),
    ]


def test_add_source_is_kept_when_initial_sync_fails(db, prop):
    service = make_service(db, {AIRBNB_URL: SyncFetchError("Failed to fetch iCal: 503 Service Unavailable", 503)})

    source, result = asyncio.run(
        service.add_source(prop.id, HOST_ID, name="Airbnb", ical_url=AIRBNB_URL)
    )

    assert not result.success
    assert result.error == "Failed to fetch iCal: 503 Service Unavailable"
    assert IcalSourceRepository(db).get_by_id(source.id) is not None
    assert source.sync_status == "sync_failed"
    assert source.last_synced_at is None


def test_add_source_validates_input(db, prop):
    service = make_service(db, {})

    with pytest.raises(InvalidRequestError):
        asyncio.run(service.add_source(prop.id, HOST_ID, name="x", ical_url="ftp://example.com/a.ics"))
    with pytest.raises(InvalidRequestError):
        asyncio.run(service.add_source(prop.id, HOST_ID, name="", ical_url=AIRBNB_URL))
    with pytest.raises(ForbiddenError):
        asyncio.run(service.add_source(prop.id, "intruder", name="x", ical_url=AIRBNB_URL))

    assert IcalSourceRepository(db).list_for_property(prop.id) == []


def test_failed_resync_keeps_last_success_and_rows(db, prop):
    responses = {AIRBNB_URL: feed(("20250401", "20250403"))}
    service = make_service(db, responses)
    source, _ = asyncio.run(service.add_source(prop.id, HOST_ID, name="Airbnb", ical_url=AIRBNB_URL))
    last_synced_at = source.last_synced_at

    responses[AIRBNB_URL] = SyncFetchError("Timed out fetching iCal after 10.0s")
    result = asyncio.run(service.sync_source(source))

    db.refresh(source)
    assert not result.success
    assert source.sync_status == "sync_failed"
    assert source.last_sync_error == "Timed out fetching iCal after 10.0s"
    assert source.last_synced_at == last_synced_at
    assert len(AvailabilityLedger(db).list_availability(prop.id)) == 2


def test_one_failing_source_does_not_stop_the_others(db, prop):
    sources = IcalSourceRepository(db)
    sources.create(property_id=prop.id, host_id=HOST_ID, name="Airbnb", ical_url=AIRBNB_URL)
    sources.create(property_id=prop.id, host_id=HOST_ID, name="Booking.com", ical_url=BOOKING_URL)
    db.commit()
    service = make_service(db, {
        AIRBNB_URL: SyncFetchError("Failed to fetch iCal: 500 Internal Server Error", 500),
        BOOKING_URL: feed(("20250501", "20250502")),
    })

    results = {r.name: r for r in asyncio.run(service.sync_property(prop.id, HOST_ID))}

    assert not results["Airbnb"].success
    assert results["Booking.com"].success
    assert results["Booking.com"].synced_days == 1
    assert len(AvailabilityLedger(db).list_availability(prop.id)) == 1


def test_unexpected_errors_are_recorded(db, prop):
    service = make_service(db, {AIRBNB_URL: RuntimeError()})

    source, result = asyncio.run(service.add_source(prop.id, HOST_ID, name="Airbnb", ical_url=AIRBNB_URL))

    assert result.error == "RuntimeError"
    assert source.last_sync_error == "RuntimeError"


def test_sync_property_requires_owner(db, prop):
    with pytest.raises(ForbiddenError):
        asyncio.run(make_service(db, {}).sync_property(prop.id, "intruder"))


def test_delete_source_releases_its_days(db, prop):
    service = make_service(db, {
        AIRBNB_URL: feed(("20250601", "20250603")),
        BOOKING_URL: feed(("20250610", "20250611")),
    })
    airbnb, _ = asyncio.run(service.add_source(prop.id, HOST_ID, name="Airbnb", ical_url=AIRBNB_URL))
    asyncio.run(service.add_source(prop.id, HOST_ID, name="Booking.com", ical_url=BOOKING_URL))
    airbnb_id = airbnb.id

    released = service.delete_source(prop.id, HOST_ID, airbnb_id)

    rows = AvailabilityLedger(db).list_availability(prop.id)
    assert released == 2
    assert [r.day for r in rows] == [date(2025, 6, 10)]
    assert IcalSourceRepository(db).get_by_id(airbnb_id) is None


def test_delete_source_of_another_property_is_not_found(db, prop):
    other = PropertyRepository(db).create(host_id=HOST_ID, name="Other")
    source = IcalSourceRepository(db).create(
        property_id=other.id, host_id=HOST_ID, name="Airbnb", ical_url=AIRBNB_URL
    )
    db.commit()

    with pytest.raises(NotFoundError):
        make_service(db, {}).delete_source(prop.id, HOST_ID, source.id)
    with pytest.raises(NotFoundError):
        make_service(db, {}).delete_source(prop.id, HOST_ID, "missing")


def test_inactive_sources_are_skipped_by_id(db, prop):
    source = IcalSourceRepository(db).create(
        property_id=prop.id, host_id=HOST_ID, name="Airbnb", ical_url=AIRBNB_URL
    )
    source.is_active = False
    db.commit()
    fetcher = FakeFetcher({})

    result = asyncio.run(IcalSyncService(db, fetcher=fetcher).sync_source_by_id(source.id))

    assert result is None
    assert fetcher.calls == []


def test_export_url_contains_token(db, prop):
    url = build_export_url(prop)

    assert url == (
        f"{settings.APP_URL}/api/v1/properties/{prop.id}/ical/export"
        f"?token={prop.ical_export_token}"
    )


class DeletingFetcher(FakeFetcher):
    """피드를 받아오는 사이에 다른 세션(다른 요청)이 source 를 삭제"""

    def __init__(self, responses: dict, session_factory, property_id: str, doomed_url: str):
        super().__init__(responses)
        self.session_factory = session_factory
        self.property_id = property_id
        self.doomed_url = doomed_url

    async def fetch(self, url: str) -> str:
        if url == self.doomed_url:
            with self.session_factory() as other:
                source = next(
                    s for s in IcalSourceRepository(other).list_for_property(self.property_id)
                    if s.ical_url == url
                )
                IcalSyncService(other, fetcher=FakeFetcher({})).delete_source(
                    self.property_id, HOST_ID, source.id
                )
        return await super().fetch(url)


def test_source_deleted_mid_fetch_leaves_no_rows(db, prop, session_factory):
    source = IcalSourceRepository(db).create(
        property_id=prop.id, host_id=HOST_ID, name="Airbnb", ical_url=AIRBNB_URL
    )
    db.commit()
    property_id = prop.id
    fetcher = DeletingFetcher(
        {AIRBNB_URL: feed(("20250310", "20250312"))}, session_factory, property_id, AIRBNB_URL
    )

    result = asyncio.run(IcalSyncService(db, fetcher=fetcher).sync_source(source))

    assert not result.success
    assert result.error == "iCal source not found"
    assert AvailabilityLedger(db).list_availability(property_id) == []
    assert IcalSourceRepository(db).list_for_property(property_id) == []


def test_deleted_sibling_does_not_stop_property_sync(db, prop, session_factory):
    sources = IcalSourceRepository(db)
    sources.create(property_id=prop.id, host_id=HOST_ID, name="Airbnb", ical_url=AIRBNB_URL)
    sources.create(property_id=prop.id, host_id=HOST_ID, name="Booking.com", ical_url=BOOKING_URL)
    db.commit()
    property_id = prop.id
    fetcher = DeletingFetcher(
        {AIRBNB_URL: feed(("20250310", "20250312")), BOOKING_URL: feed(("20250501", "20250502"))},
        session_factory,
        property_id,
        AIRBNB_URL,
    )

    results = asyncio.run(IcalSyncService(db, fetcher=fetcher).sync_property(property_id, HOST_ID))

    by_name = {r.name: r for r in results}
    rows = AvailabilityLedger(db).list_availability(property_id)
    assert not by_name["Airbnb"].success
    assert by_name["Booking.com"].success
    assert [r.day for r in rows] == [date(2025, 5, 1)]


def test_failed_cascade_keeps_source_and_rows(db, prop, monkeypatch):
    service = make_service(db, {AIRBNB_URL: feed(("20250601", "20250603"))})
    source, _ = asyncio.run(service.add_source(prop.id, HOST_ID, name="Airbnb", ical_url=AIRBNB_URL))
    source_id = source.id

    def broken_remove(self, property_id, source_ref):
        raise PersistenceError("Failed to update availability")

    monkeypatch.setattr(AvailabilityLedger, "remove_source_rows", broken_remove)

    with pytest.raises(PersistenceError):
        service.delete_source(prop.id, HOST_ID, source_id)

    assert IcalSourceRepository(db).get_by_id(source_id) is not None
    assert len(AvailabilityLedger(db).list_availability(prop.id)) == 2


def test_sync_waits_for_property_lock_without_blocking_event_loop(db, prop):
    source = IcalSourceRepository(db).create(
        property_id=prop.id, host_id=HOST_ID, name="Airbnb", ical_url=AIRBNB_URL
    )
    db.commit()
    property_id = prop.id
    service = make_service(db, {AIRBNB_URL: feed(("20250701", "20250702"))})

    lock_held = threading.Event()
    release = threading.Event()

    def hold_lock():
        with property_write_lock(property_id):
            lock_held.set()
            release.wait(5)

    holder = threading.Thread(target=hold_lock)
    holder.start()
    assert lock_held.wait(5)

    async def run():
        sync_task = asyncio.create_task(service.sync_source(source))
        # 락 대기 중에도 이벤트 루프는 다른 코루틴을 돌린다
        await asyncio.sleep(0.1)
        waiting = not sync_task.done()
        release.set()
        return waiting, await sync_task

    try:
        waiting, result = asyncio.run(run())
    finally:
        release.set()
        holder.join(5)

    assert waiting
    assert result.success
    assert result.synced_days == 1
