"""Data access layer tests."""

from __future__ import annotations

import sqlite3
import threading
from datetime import timedelta

import pytest

from roombook.data_access import reservations_dao, rooms_dao, seed, users_dao
from roombook.data_access.db import get_db, query_one, transaction
from roombook.models.entities import CATEGORY_SPECIAL, STATUS_CANCELLED


def test_room_crud_flow(app):
    """Rooms can be created, updated and soft-deactivated."""

    with app.app_context():
        room = rooms_dao.create_room(
            name="Surabaya Room",
            capacity=10,
            facilities=["TV", " Whiteboard ", "TV"],
            description="Corner room",
        )
        assert room.facilities == ["TV", "Whiteboard"]
        assert room.is_active

        rooms_dao.update_room(room.room_id, capacity=12, category=CATEGORY_SPECIAL)
        rooms_dao.set_active(room.room_id, False)
        fetched = rooms_dao.get_room_by_id(room.room_id)
        assert fetched.capacity == 12
        assert fetched.is_special
        assert not fetched.is_active
        assert fetched.name not in [item.name for item in rooms_dao.list_rooms()]
        assert fetched.name in [item.name for item in rooms_dao.list_rooms(include_inactive=True)]


def test_room_names_are_unique_ignoring_case(app):
    with app.app_context(), pytest.raises(sqlite3.IntegrityError):
        rooms_dao.create_room(name="jakarta room", capacity=3)


def test_unsupported_category_rejected(app):
    with app.app_context(), pytest.raises(ValueError):
        rooms_dao.create_room(name="Odd Room", capacity=3, category="VIP")


def test_user_emails_are_case_insensitive(app):
    with app.app_context():
        user = users_dao.create_user("Dewi", "Dewi@Example.com", users_dao.hash_password("secret1"))
        assert user.email == "dewi@example.com"
        assert users_dao.get_user_by_email("  DEWI@example.COM ").user_id == user.user_id
        assert users_dao.verify_password(user.password_hash, "secret1")
        assert not users_dao.verify_password(user.password_hash, "wrong")
        assert not users_dao.verify_password("not-a-bcrypt-hash", "secret1")


def test_storage_guard_rejects_overlapping_insert(app, public_room, employee_user, at):
    """The trigger backstop refuses a double booking written past the engine."""

    with app.app_context():
        reservations_dao.insert_reservation(public_room.room_id, employee_user.user_id, "First", at(10), at(11))
        with pytest.raises(sqlite3.IntegrityError, match="overlaps an active reservation"):
            reservations_dao.insert_reservation(
                public_room.room_id, employee_user.user_id, "Second", at(10, 30), at(11, 30)
            )
        touching = reservations_dao.insert_reservation(
            public_room.room_id, employee_user.user_id, "Third", at(11), at(12)
        )
        assert touching.title == "Third"


def test_storage_guard_allows_cancelled_rows_and_checks_updates(app, public_room, employee_user, at):
    with app.app_context():
        first = reservations_dao.insert_reservation(public_room.room_id, employee_user.user_id, "A", at(10), at(11))
        ghost = reservations_dao.insert_reservation(
            public_room.room_id, employee_user.user_id, "B", at(10), at(11), status=STATUS_CANCELLED
        )
        later = reservations_dao.insert_reservation(public_room.room_id, employee_user.user_id, "C", at(12), at(13))

        with pytest.raises(sqlite3.IntegrityError):
            reservations_dao.update_reservation(later.reservation_id, start_time=at(10, 30))
        with pytest.raises(sqlite3.IntegrityError):
            reservations_dao.update_reservation(ghost.reservation_id, status="CONFIRMED")
        reservations_dao.update_reservation(first.reservation_id, end_time=at(11, 30))
        assert reservations_dao.get_reservation_by_id(first.reservation_id).end_time == at(11, 30)


def test_window_must_be_positive_in_storage(app, public_room, employee_user, at):
    with app.app_context(), pytest.raises(sqlite3.IntegrityError):
        reservations_dao.insert_reservation(public_room.room_id, employee_user.user_id, "Bad", at(11), at(10))


def test_transaction_rolls_back_on_error(app, public_room, employee_user, at):
    with app.app_context():
        db = get_db()
        with pytest.raises(RuntimeError):
            with transaction(db):
                reservations_dao.insert_reservation(
                    public_room.room_id, employee_user.user_id, "Doomed", at(10), at(11), connection=db
                )
                raise RuntimeError("boom")
        row = query_one(db, "SELECT COUNT(*) AS total FROM reservations WHERE title = 'Doomed'")
        assert row["total"] == 0


def test_nested_transactions_join_outer_block(app, public_room, employee_user, at):
    with app.app_context():
        db = get_db()
        with transaction(db):
            with transaction(db):
                reservations_dao.insert_reservation(
                    public_room.room_id, employee_user.user_id, "Inner", at(10), at(11), connection=db
                )
            assert db.in_transaction
        assert not db.in_transaction
        assert reservations_dao.list_reservations(room_id=public_room.room_id, window_start=at(0))


def test_transaction_blocks_a_second_writer(app, at):
    """BEGIN IMMEDIATE holds the write lock until the block ends."""

    entered = threading.Event()
    release = threading.Event()
    order: list[str] = []

    def holder():
        with app.app_context():
            with transaction(get_db()):
                entered.set()
                release.wait(timeout=5)
                order.append("holder")

    def writer():
        entered.wait(timeout=5)
        with app.app_context():
            with transaction(get_db()):
                order.append("writer")

    threads = [threading.Thread(target=holder), threading.Thread(target=writer)]
    for thread in threads:
        thread.start()
    entered.wait(timeout=5)
    release.set()
    for thread in threads:
        thread.join(timeout=15)
    assert order == ["holder", "writer"]


def test_listing_filters_by_window_and_owner(app, public_room, employee_user, other_employee, at):
    with app.app_context():
        mine = reservations_dao.insert_reservation(public_room.room_id, employee_user.user_id, "Mine", at(9), at(10))
        reservations_dao.insert_reservation(public_room.room_id, other_employee.user_id, "Theirs", at(10), at(11))
        cancelled = reservations_dao.insert_reservation(
            public_room.room_id, employee_user.user_id, "Gone", at(12), at(13), status=STATUS_CANCELLED
        )

        owned = reservations_dao.list_reservations(user_id=employee_user.user_id, window_start=at(0))
        assert [item.reservation_id for item in owned] == [mine.reservation_id]

        everything = reservations_dao.list_reservations(
            user_id=employee_user.user_id, window_start=at(0), include_cancelled=True
        )
        assert cancelled.reservation_id in [item.reservation_id for item in everything]

        in_window = reservations_dao.list_reservations(window_start=at(9, 30), window_end=at(10, 30))
        assert {item.title for item in in_window} == {"Mine", "Theirs"}

        live = reservations_dao.list_active_at(at(9, 30))
        assert [item.title for item in live] == ["Mine"]
        assert reservations_dao.list_active_at(at(10))[0].title == "Theirs"


def test_deleting_user_cascades_to_reservations(app, public_room, employee_user, admin_user, at):
    with app.app_context():
        owned = reservations_dao.insert_reservation(public_room.room_id, employee_user.user_id, "Owned", at(9), at(10))
        edited = reservations_dao.insert_reservation(public_room.room_id, admin_user.user_id, "Edited", at(11), at(12))
        reservations_dao.update_reservation(edited.reservation_id, last_modified_by=employee_user.user_id)

        users_dao.delete_user(employee_user.user_id)

        assert reservations_dao.get_reservation_by_id(owned.reservation_id) is None
        assert reservations_dao.get_reservation_by_id(edited.reservation_id).last_modified_by is None


def test_seed_is_repeatable(app):
    with app.app_context():
        before = query_one(get_db(), "SELECT COUNT(*) AS total FROM reservations")["total"]
        seed.seed()
        after = query_one(get_db(), "SELECT COUNT(*) AS total FROM reservations")["total"]
    assert before == after == 3


def test_reservation_window_overlap_helper(app, public_room, employee_user, at):
    with app.app_context():
        reservation = reservations_dao.insert_reservation(
            public_room.room_id, employee_user.user_id, "Probe", at(10), at(11)
        )
    assert reservation.overlaps(at(10, 59), at(12))
    assert not reservation.overlaps(at(11), at(12))
    assert not reservation.overlaps(at(9), at(10))
    assert reservation.end_time - reservation.start_time == timedelta(hours=1)
