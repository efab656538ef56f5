"""Data access helpers for reservations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..models.entities import (
    CHECK_IN_MISSED,
    CHECK_IN_PENDING,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    Reservation,
)
from ..services.timezone import from_storage, to_storage
from .db import execute, get_db, query_all, query_one


def _row_to_reservation(row) -> Reservation:
    return Reservation(
        reservation_id=row["reservation_id"],
        room_id=row["room_id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        start_time=from_storage(row["start_time"]),
        end_time=from_storage(row["end_time"]),
        participant_count=row["participant_count"],
        status=row["status"],
        check_in_status=row["check_in_status"],
        external_row_id=row["external_row_id"],
        last_modified_by=row["last_modified_by"],
        created_at=from_storage(row["created_at"]),
        updated_at=from_storage(row["updated_at"]),
    )


def insert_reservation(
    room_id: int,
    user_id: int,
    title: str,
    start_time: datetime,
    end_time: datetime,
    participant_count: int = 1,
    description: Optional[str] = None,
    status: str = STATUS_CONFIRMED,
    external_row_id: Optional[str] = None,
    connection=None,
) -> Reservation:
    """Insert a reservation row.

    Raises ``sqlite3.IntegrityError`` when the storage overlap guard rejects
    the window.
    """

    db = connection or get_db()
    cursor = execute(
        db,
        """
        INSERT INTO reservations (
            room_id, user_id, title, description, start_time, end_time,
            participant_count, status, check_in_status, external_row_id
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            room_id,
            user_id,
            title,
            description,
            to_storage(start_time),
            to_storage(end_time),
            participant_count,
            status,
            CHECK_IN_PENDING,
            external_row_id,
        ),
    )
    return get_reservation_by_id(cursor.lastrowid, connection=db)


def get_reservation_by_id(reservation_id: int, connection=None) -> Reservation | None:
    """Fetch a specific reservation."""

    db = connection or get_db()
    row = query_one(
        db,
        "SELECT * FROM reservations WHERE reservation_id = ?",
        (reservation_id,),
    )
    return _row_to_reservation(row) if row else None


def get_reservation_by_external_id(external_row_id: str) -> Reservation | None:
    db = get_db()
    row = query_one(
        db,
        "SELECT * FROM reservations WHERE external_row_id = ?",
        (external_row_id,),
    )
    return _row_to_reservation(row) if row else None


def update_reservation(reservation_id: int, connection=None, **patch) -> None:
    """Apply a partial update and bump ``updated_at``."""

    allowed = {
        "room_id",
        "title",
        "description",
        "start_time",
        "end_time",
        "participant_count",
        "status",
        "check_in_status",
        "external_row_id",
        "last_modified_by",
    }
    updates = {key: value for key, value in patch.items() if key in allowed}
    if not updates:
        return
    for key in ("start_time", "end_time"):
        if key in updates:
            updates[key] = to_storage(updates[key])

    columns = ", ".join(f"{key} = ?" for key in updates.keys())
    params = list(updates.values()) + [reservation_id]
    db = connection or get_db()
    execute(
        db,
        f"UPDATE reservations SET {columns}, updated_at = CURRENT_TIMESTAMP WHERE reservation_id = ?",
        params,
    )


def list_active_reservations_for_room(room_id: int, connection=None) -> list[Reservation]:
    """Every non-cancelled reservation on a room, earliest first."""

    db = connection or get_db()
    rows = query_all(
        db,
        """
        SELECT * FROM reservations
        WHERE room_id = ? AND status != ?
        ORDER BY start_time ASC
        """,
        (room_id, STATUS_CANCELLED),
    )
    return [_row_to_reservation(row) for row in rows]


def list_reservations(
    room_id: Optional[int] = None,
    user_id: Optional[int] = None,
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
    include_cancelled: bool = False,
) -> list[Reservation]:
    """Filtered listing; a window selects reservations overlapping it."""

    clauses: list[str] = []
    params: list = []
    if room_id is not None:
        clauses.append("room_id = ?")
        params.append(room_id)
    if user_id is not None:
        clauses.append("user_id = ?")
        params.append(user_id)
    if window_end is not None:
        clauses.append("start_time < ?")
        params.append(to_storage(window_end))
    if window_start is not None:
        clauses.append("end_time > ?")
        params.append(to_storage(window_start))
    if not include_cancelled:
        clauses.append("status != ?")
        params.append(STATUS_CANCELLED)

    query = "SELECT * FROM reservations"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY start_time ASC"
    db = get_db()
    return [_row_to_reservation(row) for row in query_all(db, query, params)]


def list_active_at(instant: datetime) -> list[Reservation]:
    """Confirmed reservations whose window covers ``instant``."""

    db = get_db()
    stamp = to_storage(instant)
    rows = query_all(
        db,
        """
        SELECT * FROM reservations
        WHERE status = ? AND start_time <= ? AND end_time > ?
        """,
        (STATUS_CONFIRMED, stamp, stamp),
    )
    return [_row_to_reservation(row) for row in rows]


def list_without_external_id() -> list[Reservation]:
    db = get_db()
    rows = query_all(
        db,
        "SELECT * FROM reservations WHERE external_row_id IS NULL ORDER BY reservation_id",
    )
    return [_row_to_reservation(row) for row in rows]


def mark_missed_check_ins(cutoff_start: datetime) -> int:
    """Flag pending check-ins for confirmed reservations starting before the cutoff."""

    db = get_db()
    cursor = execute(
        db,
        """
        UPDATE reservations
        SET check_in_status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE check_in_status = ? AND status = ? AND start_time < ?
        """,
        (CHECK_IN_MISSED, CHECK_IN_PENDING, STATUS_CONFIRMED, to_storage(cutoff_start)),
    )
    return cursor.rowcount
