"""Half-open overlap detection tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from roombook.models.entities import STATUS_CANCELLED, STATUS_CONFIRMED, Reservation
from roombook.services.conflicts import find_conflict, has_conflict

BASE = datetime(2025, 3, 10, 2, 0, tzinfo=timezone.utc)


def _reservation(reservation_id: int, start: datetime, end: datetime, room_id: int = 1, status: str = STATUS_CONFIRMED):
    return Reservation(
        reservation_id=reservation_id,
        room_id=room_id,
        user_id=1,
        title=f"Meeting {reservation_id}",
        description=None,
        start_time=start,
        end_time=end,
        participant_count=2,
        status=status,
        check_in_status="PENDING",
        external_row_id=None,
        last_modified_by=None,
        created_at=BASE,
        updated_at=BASE,
    )


EXISTING = [_reservation(1, BASE, BASE + timedelta(hours=1))]


def test_touching_windows_do_not_conflict():
    assert not has_conflict(1, BASE + timedelta(hours=1), BASE + timedelta(hours=2), EXISTING)
    assert not has_conflict(1, BASE - timedelta(hours=1), BASE, EXISTING)


def test_partial_and_enclosing_overlaps_conflict():
    assert has_conflict(1, BASE + timedelta(minutes=30), BASE + timedelta(minutes=90), EXISTING)
    assert has_conflict(1, BASE - timedelta(minutes=30), BASE + timedelta(minutes=30), EXISTING)
    assert has_conflict(1, BASE - timedelta(hours=1), BASE + timedelta(hours=2), EXISTING)
    assert has_conflict(1, BASE + timedelta(minutes=10), BASE + timedelta(minutes=20), EXISTING)


def test_identical_window_conflicts_and_is_returned():
    conflict = find_conflict(1, BASE, BASE + timedelta(hours=1), EXISTING)
    assert conflict is EXISTING[0]


def test_other_rooms_and_cancelled_reservations_are_ignored():
    reservations = [
        _reservation(2, BASE, BASE + timedelta(hours=1), room_id=2),
        _reservation(3, BASE, BASE + timedelta(hours=1), status=STATUS_CANCELLED),
    ]
    assert find_conflict(1, BASE, BASE + timedelta(hours=1), reservations) is None


def test_excluded_reservation_does_not_conflict_with_itself():
    assert find_conflict(1, BASE, BASE + timedelta(hours=2), EXISTING, exclude_reservation_id=1) is None
