"""Overlap detection between a proposed window and a room's reservations."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..models.entities import Reservation


def find_conflict(
    room_id: int,
    proposed_start: datetime,
    proposed_end: datetime,
    reservations: Iterable[Reservation],
    exclude_reservation_id: Optional[int] = None,
) -> Optional[Reservation]:
    """Return the first active reservation on ``room_id`` overlapping the window.

    Intervals are half-open, so a reservation ending at 10:00 leaves a
    reservation starting at 10:00 free.
    """

    for reservation in reservations:
        if reservation.room_id != room_id or not reservation.is_active:
            continue
        if exclude_reservation_id is not None and reservation.reservation_id == exclude_reservation_id:
            continue
        if reservation.overlaps(proposed_start, proposed_end):
            return reservation
    return None


def has_conflict(
    room_id: int,
    proposed_start: datetime,
    proposed_end: datetime,
    reservations: Iterable[Reservation],
    exclude_reservation_id: Optional[int] = None,
) -> bool:
    return (
        find_conflict(room_id, proposed_start, proposed_end, reservations, exclude_reservation_id)
        is not None
    )
