from icalendar import Calendar

from vibesbnb.domain.models.property import Property
from vibesbnb.services.ical_fetcher import IcalFeedFetcher

from conftest import guest_headers, host_headers

FEED = (
    "BEGIN:VCALENDAR\r\nVERSION:2.0\r\n"
    "BEGIN:VEVENT\r\nDTSTART;VALUE=DATE:20250310\r\nDTEND;VALUE=DATE:20250312\r\n"
    "SUMMARY:Reserved\r\nEND:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)


def test_public_availability_and_host_blocks(client, seeded_property_id):
    pid = seeded_property_id

    response = client.put(
        f"/api/v1/host/properties/{pid}/availability",
        headers=host_headers(),
        json={"entries": [
            {"day": "2025-03-01", "status": "blocked", "note": "owner stay"},
            {"day": "2025-03-02", "status": "blocked", "room_id": "U1"},
        ]},
    )
    assert response.status_code == 200
    assert response.json()["blocked"] == 2

    listed = client.get(f"/api/v1/properties/{pid}/availability").json()
    assert [(e["day"], e["unit_id"]) for e in listed["availability"]] == [
        ("2025-03-01", None),
        ("2025-03-02", "U1"),
    ]
    assert listed["effective"] is None

    for_unit = client.get(f"/api/v1/properties/{pid}/availability", params={"unit_id": "U2"}).json()
    assert [e["day"] for e in for_unit["effective"]] == ["2025-03-01"]


def test_host_routes_check_identity_and_ownership(client, seeded_property_id):
    pid = seeded_property_id
    body = {"entries": [{"day": "2025-03-01", "status": "blocked"}]}

    assert client.put(f"/api/v1/host/properties/{pid}/availability", json=body).status_code == 401
    assert client.put(
        f"/api/v1/host/properties/{pid}/availability", headers=guest_headers(), json=body
    ).status_code == 403
    assert client.put(
        "/api/v1/host/properties/missing/availability", headers=host_headers(), json=body
    ).status_code == 404
    assert client.put(
        f"/api/v1/host/properties/{pid}/availability",
        headers=host_headers(),
        json={"entries": [{"day": "2025-03-01", "status": "booked"}]},
    ).status_code == 422


def test_ical_source_flow(client, seeded_property_id, monkeypatch):
    pid = seeded_property_id

    async def fake_fetch(self, url):
        return FEED

    monkeypatch.setattr(IcalFeedFetcher, "fetch", fake_fetch)

    created = client.post(
        f"/api/v1/host/properties/{pid}/ical",
        headers=host_headers(),
        json={"name": "Airbnb", "ical_url": "https://www.airbnb.com/calendar/ical/1.ics"},
    )
    assert created.status_code == 201
    source = created.json()["source"]
    assert source["sync_status"] == "synced"
    assert created.json()["initial_sync"]["synced_days"] == 2

    listed = client.get(f"/api/v1/host/properties/{pid}/ical", headers=host_headers()).json()
    assert [s["id"] for s in listed["sources"]] == [source["id"]]
    assert f"/api/v1/properties/{pid}/ical/export?token=" in listed["export_url"]

    synced = client.post(f"/api/v1/host/properties/{pid}/ical/sync", headers=host_headers()).json()
    assert [r["success"] for r in synced["results"]] == [True]

    deleted = client.delete(
        f"/api/v1/host/properties/{pid}/ical/{source['id']}", headers=host_headers()
    )
    assert deleted.json() == {"success": True, "released_days": 2}
    assert client.get(f"/api/v1/properties/{pid}/availability").json()["availability"] == []


def test_invalid_ical_url_is_bad_request(client, seeded_property_id):
    response = client.post(
        f"/api/v1/host/properties/{seeded_property_id}/ical",
        headers=host_headers(),
        json={"name": "Airbnb", "ical_url": "not a url"},
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid iCal URL format"}


def test_export_feed(client, seeded_property_id, session_factory):
    pid = seeded_property_id
    with session_factory() as session:
        token = session.get(Property, pid).ical_export_token

    client.post(
        "/api/v1/bookings",
        headers=guest_headers(),
        json={"property_id": pid, "check_in": "2025-01-10", "check_out": "2025-01-13"},
    )

    response = client.get(f"/api/v1/properties/{pid}/ical/export", params={"token": token})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/calendar")
    assert response.headers["content-disposition"] == 'attachment; filename="Sunny_Loft_calendar.ics"'
    events = list(Calendar.from_ical(response.text).walk("VEVENT"))
    assert len(events) == 1
    assert "DTEND;VALUE=DATE:20250113" in response.text

    assert client.get(f"/api/v1/properties/{pid}/ical/export").status_code == 401
    assert client.get(
        f"/api/v1/properties/{pid}/ical/export", params={"token": "wrong"}
    ).status_code == 401


def test_booking_routes(client, seeded_property_id):
    pid = seeded_property_id
    body = {"property_id": pid, "check_in": "2025-08-01", "check_out": "2025-08-03", "unit_ids": ["U1"]}

    created = client.post("/api/v1/bookings", headers=guest_headers(), json=body)
    assert created.status_code == 201
    booking_id = created.json()["id"]
    assert created.json()["status"] == "pending_approval"

    conflict = client.post("/api/v1/bookings", headers=guest_headers("guest-2"), json=body)
    assert conflict.status_code == 409

    assert client.post(f"/api/v1/bookings/{booking_id}/accept", headers=guest_headers()).status_code == 403
    accepted = client.post(f"/api/v1/bookings/{booking_id}/accept", headers=host_headers())
    assert accepted.json()["status"] == "accepted"
    assert client.post(f"/api/v1/bookings/{booking_id}/reject", headers=host_headers()).status_code == 400

    cancelled = client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=guest_headers())
    assert cancelled.json()["status"] == "cancelled"
    assert client.get(f"/api/v1/properties/{pid}/availability").json()["availability"] == []

    assert client.post("/api/v1/bookings", json=body).status_code == 401
    assert client.post(
        "/api/v1/bookings",
        headers=guest_headers(),
        json={**body, "check_out": "2025-08-01"},
    ).status_code == 400


def test_scheduler_status_when_disabled(client):
    response = client.get("/api/v1/scheduler/status")

    assert response.json() == {"running": False, "interval_hours": None, "next_run": None}
