"""Reservation lifecycle: create, cancel, extend, end early, check in, modify.

Every operation takes an explicit ``Actor`` and returns a ``ServiceResult``.
Reads that feed a conflict decision and the write that follows run inside one
``BEGIN IMMEDIATE`` transaction, so two requests for the same slot cannot
both pass the check. Notifications and view-cache invalidation happen after
the transaction has committed.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from ..data_access import reservations_dao, rooms_dao, users_dao
from ..data_access.db import get_db, transaction
from ..models.entities import (
    CHECK_IN_CHECKED_IN,
    CHECK_IN_PENDING,
    STATUS_CANCELLED,
    Actor,
    Reservation,
    Room,
)
from . import access_policy, notifications
from .conflicts import find_conflict
from .results import (
    CAPACITY_EXCEEDED,
    FORBIDDEN,
    INVALID_INPUT,
    INVALID_STATE,
    INVALID_WINDOW,
    NOT_FOUND,
    ROOM_INACTIVE,
    ROOM_NOT_FOUND,
    SLOT_UNAVAILABLE,
    UNAUTHORIZED,
    ServiceResult,
)
from .timezone import format_local, normalize_instant, now_utc
from .view_cache import invalidate_reservation_views

_OVERLAP_GUARD = "overlaps an active reservation"


def _clock(now: Optional[datetime]) -> datetime:
    return normalize_instant(now or now_utc())


def _slot_unavailable(conflict: Reservation) -> ServiceResult:
    window = f"{format_local(conflict.start_time, '%H:%M')}-{format_local(conflict.end_time, '%H:%M')}"
    return ServiceResult.fail(
        SLOT_UNAVAILABLE,
        f"This time slot is already booked ({window}, \"{conflict.title}\"). Please choose another time.",
        data=conflict,
    )


def _is_overlap_guard(exc: sqlite3.IntegrityError) -> bool:
    return _OVERLAP_GUARD in str(exc)


def _capacity_exceeded(room: Room) -> ServiceResult:
    return ServiceResult.fail(
        CAPACITY_EXCEEDED,
        f"{room.name} holds at most {room.capacity} participant(s).",
    )


def _load_guarded(
    db, actor: Actor, reservation_id: int, permits
) -> tuple[Optional[Reservation], Optional[Room], Optional[ServiceResult]]:
    """Fetch a reservation and its room, enforcing ownership/role rules."""

    reservation = reservations_dao.get_reservation_by_id(reservation_id, connection=db)
    if reservation is None:
        return None, None, ServiceResult.fail(NOT_FOUND)
    room = rooms_dao.get_room_by_id(reservation.room_id, connection=db)
    if room is None:
        return None, None, ServiceResult.fail(ROOM_NOT_FOUND)
    if not permits(actor, reservation, room):
        return None, None, ServiceResult.fail(FORBIDDEN)
    return reservation, room, None


def _send(event: str, reservation: Reservation, room: Room) -> None:
    owner = users_dao.get_user_by_id(reservation.user_id)
    if owner is None:
        return
    notifications.notify(event, notifications.notice_for(reservation, room, owner))


def create_reservation(
    actor: Optional[Actor],
    room_id: int,
    title: str,
    start_time: datetime,
    end_time: datetime,
    participant_count: Optional[int] = None,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ServiceResult:
    """Book ``room_id`` for the window ``[start_time, end_time)``."""

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    now = _clock(now)
    title = (title or "").strip()
    if not title:
        return ServiceResult.fail(INVALID_INPUT, "A meeting title is required.")
    participants = 1 if participant_count is None else participant_count
    if participants < 1:
        return ServiceResult.fail(INVALID_INPUT, "At least one participant is required.")
    start = normalize_instant(start_time)
    end = normalize_instant(end_time)

    db = get_db()
    try:
        with transaction(db):
            room = rooms_dao.get_room_by_id(room_id, connection=db)
            if room is None:
                return ServiceResult.fail(ROOM_NOT_FOUND)
            if not room.is_active:
                return ServiceResult.fail(ROOM_INACTIVE)
            if not access_policy.can_access(room, actor.role, access_policy.BOOK):
                return ServiceResult.fail(
                    FORBIDDEN, "You don't have permission to book special rooms. Contact an admin."
                )
            if start >= end:
                return ServiceResult.fail(INVALID_WINDOW, "End time must be after start time.")
            if start < now:
                return ServiceResult.fail(INVALID_WINDOW, "Cannot book in the past.")
            if participants > room.capacity:
                return _capacity_exceeded(room)

            active = reservations_dao.list_active_reservations_for_room(room.room_id, connection=db)
            conflict = find_conflict(room.room_id, start, end, active)
            if conflict is not None:
                current_app.logger.warning(
                    f"Rejected booking of room {room.room_id} by user {actor.user_id}: "
                    f"overlaps reservation {conflict.reservation_id}"
                )
                return _slot_unavailable(conflict)

            reservation = reservations_dao.insert_reservation(
                room.room_id,
                actor.user_id,
                title,
                start,
                end,
                participant_count=participants,
                description=(description or "").strip() or None,
                connection=db,
            )
    except sqlite3.IntegrityError as exc:
        if not _is_overlap_guard(exc):
            raise
        current_app.logger.warning(f"Storage overlap guard rejected booking of room {room_id}")
        return ServiceResult.fail(SLOT_UNAVAILABLE)

    current_app.logger.info(
        f"Reservation {reservation.reservation_id} created by user {actor.user_id} in room {room.room_id}"
    )
    _send(notifications.BOOKING_CONFIRMED, reservation, room)
    invalidate_reservation_views()
    return ServiceResult.ok(reservation)


def cancel_reservation(actor: Optional[Actor], reservation_id: int) -> ServiceResult:
    """Cancel a reservation; a repeat cancel reports ``changed=False``."""

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    db = get_db()
    with transaction(db):
        reservation, room, error = _load_guarded(db, actor, reservation_id, access_policy.can_cancel)
        if error is not None:
            return error
        if reservation.status == STATUS_CANCELLED:
            return ServiceResult.ok(
                reservation, changed=False, message="This reservation was already cancelled."
            )
        reservations_dao.update_reservation(
            reservation_id,
            connection=db,
            status=STATUS_CANCELLED,
            last_modified_by=actor.user_id,
        )
        reservation = reservations_dao.get_reservation_by_id(reservation_id, connection=db)

    current_app.logger.info(f"Reservation {reservation_id} cancelled by user {actor.user_id}")
    _send(notifications.BOOKING_CANCELLED, reservation, room)
    invalidate_reservation_views()
    return ServiceResult.ok(reservation)


def extend_reservation(
    actor: Optional[Actor],
    reservation_id: int,
    new_end_time: datetime,
    now: Optional[datetime] = None,
) -> ServiceResult:
    """Push the end of an upcoming or running reservation later."""

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    now = _clock(now)
    new_end = normalize_instant(new_end_time)
    db = get_db()
    try:
        with transaction(db):
            reservation, room, error = _load_guarded(db, actor, reservation_id, access_policy.can_modify)
            if error is not None:
                return error
            if reservation.status == STATUS_CANCELLED:
                return ServiceResult.fail(INVALID_STATE, "Cancelled reservations cannot be extended.")
            if reservation.end_time <= now:
                return ServiceResult.fail(INVALID_STATE, "This meeting has already ended.")
            if new_end <= reservation.end_time:
                return ServiceResult.fail(
                    INVALID_STATE, "The new end time must be later than the current end time."
                )

            active = reservations_dao.list_active_reservations_for_room(room.room_id, connection=db)
            conflict = find_conflict(
                room.room_id, reservation.start_time, new_end, active, exclude_reservation_id=reservation_id
            )
            if conflict is not None:
                return _slot_unavailable(conflict)

            reservations_dao.update_reservation(reservation_id, connection=db, end_time=new_end)
            reservation = reservations_dao.get_reservation_by_id(reservation_id, connection=db)
    except sqlite3.IntegrityError as exc:
        if not _is_overlap_guard(exc):
            raise
        return ServiceResult.fail(SLOT_UNAVAILABLE)

    current_app.logger.info(f"Reservation {reservation_id} extended to {new_end.isoformat()} by user {actor.user_id}")
    invalidate_reservation_views()
    return ServiceResult.ok(reservation)


def end_early(
    actor: Optional[Actor],
    reservation_id: int,
    now: Optional[datetime] = None,
) -> ServiceResult:
    """Finish a meeting that is in progress, freeing the rest of its window."""

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    now = _clock(now)
    db = get_db()
    with transaction(db):
        reservation, _room, error = _load_guarded(db, actor, reservation_id, access_policy.can_modify)
        if error is not None:
            return error
        if reservation.status == STATUS_CANCELLED:
            return ServiceResult.fail(INVALID_STATE, "Cancelled reservations cannot be ended.")
        # The start < end window invariant wins: at exactly the start instant there is nothing to end.
        if not reservation.start_time < now < reservation.end_time:
            return ServiceResult.fail(INVALID_STATE, "Only meetings in progress can be ended early.")
        reservations_dao.update_reservation(
            reservation_id, connection=db, end_time=now, last_modified_by=actor.user_id
        )
        reservation = reservations_dao.get_reservation_by_id(reservation_id, connection=db)

    current_app.logger.info(f"Reservation {reservation_id} ended early by user {actor.user_id}")
    invalidate_reservation_views()
    return ServiceResult.ok(reservation)


def check_in(
    actor: Optional[Actor],
    reservation_id: int,
    now: Optional[datetime] = None,
) -> ServiceResult:
    """Confirm attendance; only the owner, and only around the start time."""

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    now = _clock(now)
    window = timedelta(minutes=current_app.config["CHECK_IN_WINDOW_MINUTES"])
    db = get_db()
    with transaction(db):
        reservation = reservations_dao.get_reservation_by_id(reservation_id, connection=db)
        if reservation is None:
            return ServiceResult.fail(NOT_FOUND)
        if not access_policy.is_owner(actor, reservation):
            return ServiceResult.fail(FORBIDDEN, "Only the person who booked the room can check in.")
        if reservation.status == STATUS_CANCELLED:
            return ServiceResult.fail(INVALID_STATE, "Cancelled reservations cannot be checked in.")
        if reservation.check_in_status != CHECK_IN_PENDING:
            return ServiceResult.fail(
                INVALID_STATE, f"Check-in is already {reservation.check_in_status.replace('_', ' ').lower()}."
            )
        if not reservation.start_time - window <= now <= reservation.start_time + window:
            minutes = int(window.total_seconds() // 60)
            return ServiceResult.fail(
                INVALID_STATE,
                f"Check-in is open from {minutes} minutes before to {minutes} minutes after the start time.",
            )
        reservations_dao.update_reservation(reservation_id, connection=db, check_in_status=CHECK_IN_CHECKED_IN)
        reservation = reservations_dao.get_reservation_by_id(reservation_id, connection=db)

    current_app.logger.info(f"Reservation {reservation_id} checked in")
    invalidate_reservation_views()
    return ServiceResult.ok(reservation)


def modify_reservation(
    actor: Optional[Actor],
    reservation_id: int,
    title: Optional[str] = None,
    description: Optional[str] = None,
    room_id: Optional[int] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    participant_count: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ServiceResult:
    """Rewrite any subset of a reservation's fields in one step.

    Arguments left as ``None`` keep their current value; an empty
    ``description`` clears it.
    """

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    if title is not None and not title.strip():
        return ServiceResult.fail(INVALID_INPUT, "A meeting title is required.")
    if participant_count is not None and participant_count < 1:
        return ServiceResult.fail(INVALID_INPUT, "At least one participant is required.")

    db = get_db()
    try:
        with transaction(db):
            reservation, room, error = _load_guarded(db, actor, reservation_id, access_policy.can_modify)
            if error is not None:
                return error
            if reservation.status == STATUS_CANCELLED:
                return ServiceResult.fail(INVALID_STATE, "Cancelled reservations cannot be modified.")

            target = room
            if room_id is not None and room_id != room.room_id:
                target = rooms_dao.get_room_by_id(room_id, connection=db)
                if target is None:
                    return ServiceResult.fail(ROOM_NOT_FOUND)
                if not target.is_active:
                    return ServiceResult.fail(ROOM_INACTIVE)
                action = access_policy.modify_action(actor, reservation)
                if not access_policy.can_access(target, actor.role, action):
                    return ServiceResult.fail(
                        FORBIDDEN, f"You don't have permission to move this reservation to {target.name}."
                    )

            start = normalize_instant(start_time) if start_time is not None else reservation.start_time
            end = normalize_instant(end_time) if end_time is not None else reservation.end_time
            if start >= end:
                return ServiceResult.fail(INVALID_WINDOW, "End time must be after start time.")
            participants = participant_count if participant_count is not None else reservation.participant_count
            if participants > target.capacity:
                return _capacity_exceeded(target)

            active = reservations_dao.list_active_reservations_for_room(target.room_id, connection=db)
            conflict = find_conflict(target.room_id, start, end, active, exclude_reservation_id=reservation_id)
            if conflict is not None:
                return _slot_unavailable(conflict)

            patch = {
                "room_id": target.room_id,
                "start_time": start,
                "end_time": end,
                "participant_count": participants,
                "last_modified_by": actor.user_id,
            }
            if title is not None:
                patch["title"] = title.strip()
            if description is not None:
                patch["description"] = description.strip() or None
            reservations_dao.update_reservation(reservation_id, connection=db, **patch)
            reservation = reservations_dao.get_reservation_by_id(reservation_id, connection=db)
    except sqlite3.IntegrityError as exc:
        if not _is_overlap_guard(exc):
            raise
        return ServiceResult.fail(SLOT_UNAVAILABLE)

    current_app.logger.info(f"Reservation {reservation_id} modified by user {actor.user_id}")
    invalidate_reservation_views()
    return ServiceResult.ok(reservation)


def sweep_missed_check_ins(now: Optional[datetime] = None) -> int:
    """Mark pending check-ins as missed once their window has closed."""

    now = _clock(now)
    cutoff = now - timedelta(minutes=current_app.config["CHECK_IN_WINDOW_MINUTES"])
    marked = reservations_dao.mark_missed_check_ins(cutoff)
    if marked:
        current_app.logger.info(f"Marked {marked} reservation(s) as missed check-in")
        invalidate_reservation_views()
    return marked
