"""JSON API status codes and payloads."""

from __future__ import annotations

from roombook.services.timezone import to_local, to_storage

from conftest import login


def _create(client, room, start, end, **extra):
    payload = {
        "room_id": room.room_id,
        "title": "API Sync",
        "start_time": to_storage(start),
        "end_time": to_storage(end),
        **extra,
    }
    return client.post("/api/reservations", json=payload)


def test_requires_sign_in(client, public_room, at):
    listing = client.get("/api/rooms")
    created = _create(client, public_room, at(10), at(11))

    assert listing.status_code == 401
    assert listing.get_json()["error"] == "UNAUTHORIZED"
    assert created.status_code == 401


def test_create_and_conflict(client, employee_user, other_employee, public_room, at):
    login(client, employee_user.email)
    created = _create(client, public_room, at(10), at(11), participant_count=3)
    body = created.get_json()

    assert created.status_code == 201
    assert body["success"] is True
    assert body["data"]["start_time"] == to_storage(at(10))
    assert body["data"]["participant_count"] == 3
    assert body["data"]["status"] == "CONFIRMED"

    client.get("/auth/logout")
    login(client, other_employee.email)
    clash = _create(client, public_room, at(10, 30), at(11, 30))
    touching = _create(client, public_room, at(11), at(12))

    assert clash.status_code == 409
    assert clash.get_json()["error"] == "SLOT_UNAVAILABLE"
    assert touching.status_code == 201


def test_naive_times_are_local(client, employee_user, public_room, at):
    login(client, employee_user.email)
    response = client.post(
        "/api/reservations",
        json={
            "room_id": public_room.room_id,
            "title": "Local",
            "start_time": to_local(at(14)).strftime("%Y-%m-%dT%H:%M:%S"),
            "end_time": to_local(at(15)).strftime("%Y-%m-%dT%H:%M:%S"),
        },
    )

    assert response.status_code == 201
    assert response.get_json()["data"]["start_time"] == to_storage(at(14))


def test_create_validation_codes(client, employee_user, public_room, small_room, special_room, inactive_room, at):
    login(client, employee_user.email)

    bad_time = client.post("/api/reservations", json={"room_id": public_room.room_id, "title": "X", "start_time": "soon", "end_time": "later"})
    no_room = client.post("/api/reservations", json={"title": "X"})
    reversed_window = _create(client, public_room, at(11), at(10))
    crowded = _create(client, small_room, at(10), at(11), participant_count=5)
    special = _create(client, special_room, at(10), at(11))
    inactive = _create(client, inactive_room, at(10), at(11))
    missing = client.post("/api/reservations", json={"room_id": 9999, "title": "X", "start_time": to_storage(at(10)), "end_time": to_storage(at(11))})

    assert (bad_time.status_code, bad_time.get_json()["error"]) == (400, "INVALID_INPUT")
    assert no_room.status_code == 400
    assert reversed_window.get_json()["error"] == "INVALID_WINDOW"
    assert (crowded.status_code, crowded.get_json()["error"]) == (400, "CAPACITY_EXCEEDED")
    assert (special.status_code, special.get_json()["error"]) == (403, "FORBIDDEN")
    assert (inactive.status_code, inactive.get_json()["error"]) == (409, "ROOM_INACTIVE")
    assert (missing.status_code, missing.get_json()["error"]) == (404, "ROOM_NOT_FOUND")


def test_lifecycle_endpoints(client, employee_user, other_employee, public_room, small_room, at):
    login(client, employee_user.email)
    reservation_id = _create(client, public_room, at(10), at(11)).get_json()["data"]["id"]

    patched = client.patch(
        f"/api/reservations/{reservation_id}",
        json={"room_id": small_room.room_id, "title": "Moved", "participant_count": 2},
    )
    extended = client.post(f"/api/reservations/{reservation_id}/extend", json={"new_end_time": to_storage(at(12))})
    early = client.post(f"/api/reservations/{reservation_id}/check-in")

    assert patched.status_code == 200
    assert patched.get_json()["data"]["room_id"] == small_room.room_id
    assert patched.get_json()["data"]["title"] == "Moved"
    assert extended.get_json()["data"]["end_time"] == to_storage(at(12))
    assert (early.status_code, early.get_json()["error"]) == (409, "INVALID_STATE")

    client.get("/auth/logout")
    login(client, other_employee.email)
    foreign = client.post(f"/api/reservations/{reservation_id}/cancel")
    assert (foreign.status_code, foreign.get_json()["error"]) == (403, "FORBIDDEN")

    client.get("/auth/logout")
    login(client, employee_user.email)
    cancelled = client.post(f"/api/reservations/{reservation_id}/cancel")
    repeated = client.post(f"/api/reservations/{reservation_id}/cancel")
    ended = client.post(f"/api/reservations/{reservation_id}/end")
    unknown = client.post("/api/reservations/9999/cancel")

    assert cancelled.get_json() == {"success": True, "changed": True, "data": cancelled.get_json()["data"]}
    assert cancelled.get_json()["data"]["status"] == "CANCELLED"
    assert repeated.status_code == 200
    assert repeated.get_json()["changed"] is False
    assert ended.status_code == 409
    assert unknown.status_code == 404


def test_listing_and_timeline(client, employee_user, public_room, at):
    login(client, employee_user.email)
    _create(client, public_room, at(10), at(11))
    day = to_local(at(10)).date().isoformat()

    rooms = {room["name"]: room for room in client.get("/api/rooms").get_json()}
    mine = client.get(f"/api/reservations?mine=1&date={day}").get_json()
    timeline = client.get(f"/api/rooms/{public_room.room_id}/timeline?date={day}").get_json()
    bad_day = client.get("/api/reservations?date=tomorrow")

    assert rooms["Board Room"]["can_book"] is False
    assert rooms["Jakarta Room"]["can_book"] is True
    assert [item["title"] for item in mine] == ["API Sync"]
    slots = {slot["label"]: slot["reservation_id"] for slot in timeline["slots"]}
    assert slots["10:00"] == mine[0]["id"]
    assert slots["11:00"] is None
    assert bad_day.status_code == 400


def test_stats_and_analytics_visibility(client, employee_user, admin_user):
    login(client, employee_user.email)
    stats = client.get("/api/stats").get_json()
    denied = client.get("/api/analytics")
    sync_denied = client.post("/api/sync")

    assert set(stats) == {"total_rooms", "today_bookings", "my_bookings", "active_bookings", "available_rooms"}
    assert denied.status_code == 403
    assert sync_denied.status_code == 403

    client.get("/auth/logout")
    login(client, admin_user.email)
    analytics = client.get("/api/analytics")
    unconfigured = client.post("/api/sync")

    assert analytics.status_code == 200
    assert len(analytics.get_json()["daily"]) == 30
    assert (unconfigured.status_code, unconfigured.get_json()["error"]) == (503, "SYNC_NOT_CONFIGURED")


def test_writes_require_csrf_header(app, client, employee_user, public_room, at):
    login(client, employee_user.email)
    created = _create(client, public_room, at(10), at(11))
    reservation_id = created.get_json()["data"]["id"]

    app.config["WTF_CSRF_ENABLED"] = True
    forged_cancel = client.post(f"/api/reservations/{reservation_id}/cancel")
    forged_create = _create(client, public_room, at(13), at(14))
    listing = client.get("/api/reservations")

    assert forged_cancel.status_code == 400
    assert forged_cancel.get_json()["error"] == "INVALID_INPUT"
    assert forged_create.status_code == 400
    assert listing.status_code == 200
    assert [item["status"] for item in listing.get_json()] == ["CONFIRMED"]

    token = client.get("/api/csrf-token").get_json()["data"]["csrf_token"]
    cancelled = client.post(
        f"/api/reservations/{reservation_id}/cancel",
        headers={"X-CSRFToken": token},
    )

    assert cancelled.status_code == 200
    assert cancelled.get_json()["data"]["status"] == "CANCELLED"
