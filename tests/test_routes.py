"""Page-level booking and admin workflows through the test client."""

from __future__ import annotations

from roombook.app import mail
from roombook.data_access import reservations_dao, rooms_dao, users_dao
from roombook.models.entities import STATUS_CANCELLED
from roombook.services.timezone import to_local

from conftest import login

FORM_FORMAT = "%Y-%m-%dT%H:%M"


def _booking_form(room, start, end, title="Design Review", participants=4):
    return {
        "room_id": room.room_id,
        "title": title,
        "description": "",
        "start_time": to_local(start).strftime(FORM_FORMAT),
        "end_time": to_local(end).strftime(FORM_FORMAT),
        "participant_count": participants,
    }


def test_dashboard_greets_signed_in_user(client, employee_user):
    login(client, employee_user.email)

    response = client.get("/")
    assert response.status_code == 200
    assert b"Welcome back, Sari Employee" in response.data
    assert client.get("/dashboard").status_code == 302


def test_room_list_filters_by_category(client, employee_user):
    login(client, employee_user.email)

    everything = client.get("/rooms/")
    special = client.get("/rooms/?category=special")

    assert b"Jakarta Room" in everything.data
    assert b"Archive Room" not in everything.data
    assert b"Board Room" in special.data
    assert b"Jakarta Room" not in special.data


def test_room_detail_errors(client, employee_user, inactive_room, public_room):
    login(client, employee_user.email)

    assert client.get(f"/rooms/{inactive_room.room_id}").status_code == 404
    assert client.get("/rooms/9999").status_code == 404
    assert client.get(f"/rooms/{public_room.room_id}?date=not-a-date").status_code == 400


def test_book_from_schedule_page(client, app, employee_user, public_room, at):
    login(client, employee_user.email)

    with mail.record_messages() as outbox:
        response = client.post(
            "/bookings/create",
            data=_booking_form(public_room, at(10), at(11)),
            follow_redirects=True,
        )

    assert response.status_code == 200
    assert b"Reservation confirmed." in response.data
    assert b"Design Review" in response.data
    assert [message.subject for message in outbox] == ["Booking Confirmed: Design Review - Jakarta Room"]
    with app.app_context():
        booked = reservations_dao.list_reservations(room_id=public_room.room_id, window_start=at(10), window_end=at(11))
    assert [item.user_id for item in booked] == [employee_user.user_id]


def test_double_booking_is_refused(client, other_employee, employee_user, public_room, at):
    login(client, employee_user.email)
    client.post("/bookings/create", data=_booking_form(public_room, at(10), at(11)), follow_redirects=True)
    client.get("/auth/logout")

    login(client, other_employee.email)
    response = client.post(
        "/bookings/create",
        data=_booking_form(public_room, at(10, 30), at(11, 30), title="Overlap"),
        follow_redirects=True,
    )

    assert b"This time slot is already booked" in response.data


def test_employee_cannot_book_special_room(client, employee_user, admin_user, special_room, at):
    login(client, employee_user.email)
    refused = client.post("/bookings/create", data=_booking_form(special_room, at(10), at(11)), follow_redirects=True)
    assert b"permission to book special rooms" in refused.data
    client.get("/auth/logout")

    login(client, admin_user.email)
    accepted = client.post("/bookings/create", data=_booking_form(special_room, at(10), at(11)), follow_redirects=True)
    assert b"Reservation confirmed." in accepted.data


def test_missing_times_are_reported(client, employee_user, public_room):
    login(client, employee_user.email)

    response = client.post(
        "/bookings/create",
        data={"room_id": public_room.room_id, "title": "No times"},
        follow_redirects=True,
    )
    assert b"Please provide a start time." in response.data


def test_cancel_and_edit_from_my_bookings(client, app, employee_user, other_employee, public_room, small_room, at):
    login(client, employee_user.email)
    client.post("/bookings/create", data=_booking_form(public_room, at(10), at(11)), follow_redirects=True)
    with app.app_context():
        reservation = reservations_dao.list_reservations(user_id=employee_user.user_id, window_start=at(10))[0]

    page = client.get("/bookings/my")
    assert b"Design Review" in page.data
    assert client.get(f"/bookings/{reservation.reservation_id}/edit").status_code == 200

    edited = client.post(
        f"/bookings/{reservation.reservation_id}/edit",
        data={**_booking_form(small_room, at(12), at(13), title="Design Review v2", participants=3)},
        follow_redirects=True,
    )
    assert b"Reservation updated." in edited.data

    cancelled = client.post(f"/bookings/{reservation.reservation_id}/cancel", follow_redirects=True)
    assert b"Reservation cancelled." in cancelled.data
    with app.app_context():
        stored = reservations_dao.get_reservation_by_id(reservation.reservation_id)
    assert stored.room_id == small_room.room_id
    assert stored.title == "Design Review v2"
    assert stored.status == STATUS_CANCELLED

    client.get("/auth/logout")
    login(client, other_employee.email)
    assert client.get(f"/bookings/{reservation.reservation_id}/edit").status_code == 403


def test_admin_sees_all_bookings(client, admin_user):
    login(client, admin_user.email)

    response = client.get("/bookings/my?scope=all")
    assert b"All bookings" in response.data
    assert b"Sprint Planning" in response.data
    assert b"1:1 Sync" in response.data


def test_admin_room_management(client, app, admin_user):
    login(client, admin_user.email)

    created = client.post(
        "/admin/rooms/new",
        data={"name": "Surabaya Room", "category": "PUBLIC", "capacity": 10, "facilities": "TV, Whiteboard", "is_active": "y"},
        follow_redirects=True,
    )
    assert b"Room created." in created.data

    duplicate = client.post(
        "/admin/rooms/new",
        data={"name": "surabaya room", "category": "PUBLIC", "capacity": 3},
        follow_redirects=True,
    )
    assert b"A room with that name already exists." in duplicate.data

    with app.app_context():
        room = rooms_dao.get_room_by_name("Surabaya Room")
    assert room.facilities == ["TV", "Whiteboard"]

    toggled = client.post(f"/admin/rooms/{room.room_id}/toggle", follow_redirects=True)
    assert b"Surabaya Room deactivated." in toggled.data
    with app.app_context():
        assert not rooms_dao.get_room_by_id(room.room_id).is_active


def test_admin_user_management(client, app, admin_user, employee_user):
    login(client, admin_user.email)

    listing = client.get("/admin/users")
    assert b"sari@roombook.id" in listing.data

    created = client.post(
        "/admin/users/new",
        data={"name": "Joko", "email": "joko@example.com", "role": "EMPLOYEE", "password": "secret12"},
        follow_redirects=True,
    )
    assert b"User created." in created.data

    deactivated = client.post(f"/admin/users/{employee_user.user_id}/toggle", follow_redirects=True)
    assert b"Sari Employee deactivated." in deactivated.data
    with app.app_context():
        assert not users_dao.get_user_by_id(employee_user.user_id).is_active


def test_admin_sync_page(client, app, admin_user, tmp_path):
    login(client, admin_user.email)

    page = client.get("/admin/sync")
    assert b"Spreadsheet sync" in page.data

    unconfigured = client.post("/admin/sync", data={}, follow_redirects=True)
    assert b"The external sheet is not configured." in unconfigured.data

    app.config["SHEET_DIRECTORY"] = str(tmp_path / "sheet")
    configured = client.post("/admin/sync", data={}, follow_redirects=True)
    assert b"Sync finished: 0 imported, 7 pushed" in configured.data


def test_admin_analytics_page(client, admin_user):
    login(client, admin_user.email)

    response = client.get("/admin/")
    assert response.status_code == 200
    assert b"Jakarta Room" in response.data


def test_sweep_check_ins_command(runner):
    result = runner.invoke(args=["sweep-check-ins"])

    assert result.exit_code == 0
    assert "Marked 0 reservation(s) as missed." in result.output
