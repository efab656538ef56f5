"""Read-side queries for rooms, timelines, dashboards and analytics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from ..data_access import reservations_dao, rooms_dao
from ..models.entities import (
    CHECK_IN_CHECKED_IN,
    CHECK_IN_MISSED,
    CHECK_IN_PENDING,
    Actor,
    Reservation,
    Room,
)
from . import access_policy, view_cache
from .timezone import (
    Slot,
    configured_day_slots,
    day_bounds,
    format_local,
    local_today,
    normalize_instant,
    now_utc,
    to_local,
)


@dataclass
class RoomStatus:
    room: Room
    can_book: bool
    is_occupied: bool
    current_meeting: Optional[Reservation] = None


@dataclass
class TimelineSlot:
    slot: Slot
    reservation: Optional[Reservation] = None

    @property
    def is_free(self) -> bool:
        return self.reservation is None


def list_rooms_for(actor: Actor, now: Optional[datetime] = None) -> list[RoomStatus]:
    """Active rooms with the requester's booking right and live occupancy."""

    now = normalize_instant(now or now_utc())
    occupying = {reservation.room_id: reservation for reservation in reservations_dao.list_active_at(now)}
    statuses = []
    for room in rooms_dao.list_rooms():
        current = occupying.get(room.room_id)
        statuses.append(
            RoomStatus(
                room=room,
                can_book=access_policy.can_book(room, actor.role),
                is_occupied=current is not None,
                current_meeting=current,
            )
        )
    return statuses


def list_reservations(
    room_id: Optional[int] = None,
    day: Optional[date] = None,
    user_id: Optional[int] = None,
    include_cancelled: bool = False,
) -> list[Reservation]:
    """Reservations filtered by room, local calendar day and owner."""

    def build() -> list[Reservation]:
        window_start = window_end = None
        if day is not None:
            window_start, window_end = day_bounds(day)
        return reservations_dao.list_reservations(
            room_id=room_id,
            user_id=user_id,
            window_start=window_start,
            window_end=window_end,
            include_cancelled=include_cancelled,
        )

    key = (room_id, day, user_id, include_cancelled)
    return view_cache.get_view_cache().get_or_build(view_cache.BOOKING, key, build)


def room_day_timeline(room: Room, day: date) -> list[TimelineSlot]:
    """The configured slot grid for ``day``, each slot paired with its occupant."""

    def build() -> list[TimelineSlot]:
        window_start, window_end = day_bounds(day)
        reservations = reservations_dao.list_reservations(
            room_id=room.room_id, window_start=window_start, window_end=window_end
        )
        timeline = []
        for slot in configured_day_slots(day):
            occupant = next(
                (item for item in reservations if item.overlaps(slot.start, slot.end)),
                None,
            )
            timeline.append(TimelineSlot(slot=slot, reservation=occupant))
        return timeline

    return view_cache.get_view_cache().get_or_build(view_cache.SCHEDULE, (room.room_id, day), build)


def dashboard_stats(actor: Actor, now: Optional[datetime] = None) -> dict[str, int]:
    now = normalize_instant(now or now_utc())

    def build() -> dict[str, int]:
        rooms = rooms_dao.list_rooms()
        today_start, today_end = day_bounds(local_today(now))
        today = [
            item
            for item in reservations_dao.list_reservations(window_start=today_start, window_end=today_end)
            if item.start_time >= today_start and item.end_time <= today_end
        ]
        mine = reservations_dao.list_reservations(user_id=actor.user_id, window_start=now)
        in_progress = reservations_dao.list_active_at(now)
        occupied_rooms = {item.room_id for item in in_progress}
        return {
            "total_rooms": len(rooms),
            "today_bookings": len(today),
            "my_bookings": len(mine),
            "active_bookings": len(in_progress),
            "available_rooms": len([room for room in rooms if room.room_id not in occupied_rooms]),
        }

    # Occupancy moves with the clock: one entry per user, rebuilt each minute.
    minute = now.replace(second=0, microsecond=0)
    return view_cache.get_view_cache().get_or_build(view_cache.DASHBOARD, actor.user_id, build, stamp=minute)


def analytics_summary(now: Optional[datetime] = None, days: int = 30) -> dict:
    """Usage over the last ``days`` local days, cancelled reservations excluded."""

    now = normalize_instant(now or now_utc())
    today = local_today(now)

    def build() -> dict:
        window_start, _ = day_bounds(today - timedelta(days=days))
        reservations = [
            item
            for item in reservations_dao.list_reservations(window_start=window_start)
            if item.start_time >= window_start
        ]
        rooms = rooms_dao.list_rooms()

        room_usage = []
        for room in rooms:
            booked = [item for item in reservations if item.room_id == room.room_id]
            hours = sum((item.end_time - item.start_time).total_seconds() for item in booked) / 3600
            room_usage.append(
                {
                    "name": room.name,
                    "category": room.category,
                    "bookings": len(booked),
                    "hours": round(hours, 1),
                }
            )

        per_day = Counter(format_local(item.start_time, "%m/%d") for item in reservations)
        daily = []
        for offset in range(days - 1, -1, -1):
            label = (today - timedelta(days=offset)).strftime("%m/%d")
            daily.append({"date": label, "bookings": per_day.get(label, 0)})

        per_hour = Counter(to_local(item.start_time).hour for item in reservations)
        hourly = [{"hour": f"{hour}:00", "bookings": per_hour.get(hour, 0)} for hour in range(7, 21)]

        check_ins = Counter(item.check_in_status for item in reservations)
        return {
            "room_usage": room_usage,
            "daily": daily,
            "hourly": hourly,
            "check_in": {
                "total": len(reservations),
                "checked_in": check_ins.get(CHECK_IN_CHECKED_IN, 0),
                "missed": check_ins.get(CHECK_IN_MISSED, 0),
                "pending": check_ins.get(CHECK_IN_PENDING, 0),
            },
            "total_bookings": len(reservations),
        }

    return view_cache.get_view_cache().get_or_build(view_cache.ANALYTICS, days, build, stamp=today)
