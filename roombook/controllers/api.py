"""JSON endpoints mirroring the HTML booking workflow."""

from __future__ import annotations

from datetime import date, datetime
from functools import wraps
from typing import Any, Callable, Optional

from dateutil import parser
from flask import Blueprint, jsonify, request
from flask_login import current_user
from flask_wtf.csrf import CSRFError, generate_csrf

from ..data_access import rooms_dao
from ..models.entities import Reservation, Room
from ..services import booking, schedule, sync
from ..services.results import FORBIDDEN, INVALID_INPUT, ROOM_NOT_FOUND, UNAUTHORIZED, ServiceResult
from ..services.timezone import local_today, to_instant, to_storage
from .auth import current_actor

bp = Blueprint("api", __name__, url_prefix="/api")


def _reply(result: ServiceResult, payload: Any = None):
    if not result.success:
        return jsonify(result.to_dict()), result.http_status
    body = result.to_dict()
    if payload is not None:
        body["data"] = payload
    return jsonify(body), 200


def api_login_required(view: Callable) -> Callable:
    """Like ``login_required`` but answers with a JSON 401 instead of a redirect."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return _reply(ServiceResult.fail(UNAUTHORIZED))
        return view(*args, **kwargs)

    return wrapped


def reservation_json(reservation: Reservation) -> dict[str, Any]:
    return {
        "id": reservation.reservation_id,
        "room_id": reservation.room_id,
        "user_id": reservation.user_id,
        "title": reservation.title,
        "description": reservation.description,
        "start_time": to_storage(reservation.start_time),
        "end_time": to_storage(reservation.end_time),
        "participant_count": reservation.participant_count,
        "status": reservation.status,
        "check_in_status": reservation.check_in_status,
    }


def room_json(room: Room) -> dict[str, Any]:
    return {
        "id": room.room_id,
        "name": room.name,
        "category": room.category,
        "capacity": room.capacity,
        "facilities": room.facilities,
        "description": room.description,
        "is_active": room.is_active,
    }


def _time_field(payload: dict, name: str, required: bool = True) -> Optional[datetime]:
    """Parse an ISO timestamp; values without an offset are local wall time."""

    raw = payload.get(name)
    if raw in (None, ""):
        if required:
            raise ValueError(f"{name} is required")
        return None
    return to_instant(parser.isoparse(str(raw)))


def _int_field(payload: dict, name: str) -> Optional[int]:
    raw = payload.get(name)
    if raw in (None, ""):
        return None
    return int(raw)


def _invalid(exc: Exception):
    return _reply(ServiceResult.fail(INVALID_INPUT, str(exc)))


def _day_arg() -> Optional[date]:
    raw = (request.args.get("date") or "").strip()
    return date.fromisoformat(raw) if raw else None


@bp.errorhandler(CSRFError)
def csrf_failed(error: CSRFError):
    return _reply(ServiceResult.fail(INVALID_INPUT, error.description))


@bp.get("/csrf-token")
@api_login_required
def csrf_token():
    """Token to send back in the ``X-CSRFToken`` header on every write."""

    return jsonify({"success": True, "data": {"csrf_token": generate_csrf()}})


@bp.get("/rooms")
@api_login_required
def rooms():
    statuses = schedule.list_rooms_for(current_actor())
    return jsonify(
        [
            {
                **room_json(status.room),
                "can_book": status.can_book,
                "is_occupied": status.is_occupied,
                "current_meeting": reservation_json(status.current_meeting) if status.current_meeting else None,
            }
            for status in statuses
        ]
    )


@bp.get("/rooms/<int:room_id>/timeline")
@api_login_required
def room_timeline(room_id: int):
    room = rooms_dao.get_room_by_id(room_id)
    if room is None or not room.is_active:
        return _reply(ServiceResult.fail(ROOM_NOT_FOUND))
    try:
        day = _day_arg() or local_today()
    except ValueError as exc:
        return _invalid(exc)
    return jsonify(
        {
            "room": room_json(room),
            "date": day.isoformat(),
            "slots": [
                {
                    "label": entry.slot.label,
                    "start_time": to_storage(entry.slot.start),
                    "end_time": to_storage(entry.slot.end),
                    "reservation_id": None if entry.is_free else entry.reservation.reservation_id,
                }
                for entry in schedule.room_day_timeline(room, day)
            ],
        }
    )


@bp.get("/reservations")
@api_login_required
def reservations():
    """Filter by ``room_id``, local ``date`` and ``mine=1``."""

    try:
        day = _day_arg()
        room_id = _int_field(request.args, "room_id")
    except ValueError as exc:
        return _invalid(exc)
    user_id = current_user.user_id if request.args.get("mine") in {"1", "true"} else None
    items = schedule.list_reservations(
        room_id=room_id,
        day=day,
        user_id=user_id,
        include_cancelled=request.args.get("include_cancelled") in {"1", "true"},
    )
    return jsonify([reservation_json(item) for item in items])


@bp.post("/reservations")
def create_reservation():
    payload = request.get_json(silent=True) or {}
    try:
        room_id = _int_field(payload, "room_id")
        if room_id is None:
            raise ValueError("room_id is required")
        start = _time_field(payload, "start_time")
        end = _time_field(payload, "end_time")
        participants = _int_field(payload, "participant_count")
    except (ValueError, OverflowError) as exc:
        return _invalid(exc)
    result = booking.create_reservation(
        current_actor(),
        room_id,
        payload.get("title") or "",
        start,
        end,
        participant_count=participants,
        description=payload.get("description"),
    )
    if not result.success:
        return _reply(result)
    return jsonify({"success": True, "data": reservation_json(result.data)}), 201


@bp.patch("/reservations/<int:reservation_id>")
def modify_reservation(reservation_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = {
            "room_id": _int_field(payload, "room_id"),
            "start_time": _time_field(payload, "start_time", required=False),
            "end_time": _time_field(payload, "end_time", required=False),
            "participant_count": _int_field(payload, "participant_count"),
        }
    except (ValueError, OverflowError) as exc:
        return _invalid(exc)
    result = booking.modify_reservation(
        current_actor(),
        reservation_id,
        title=payload.get("title"),
        description=payload.get("description"),
        **patch,
    )
    return _reply(result, reservation_json(result.data) if result.success else None)


@bp.post("/reservations/<int:reservation_id>/cancel")
def cancel_reservation(reservation_id: int):
    result = booking.cancel_reservation(current_actor(), reservation_id)
    return _reply(result, reservation_json(result.data) if result.success else None)


@bp.post("/reservations/<int:reservation_id>/extend")
def extend_reservation(reservation_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        new_end = _time_field(payload, "new_end_time")
    except (ValueError, OverflowError) as exc:
        return _invalid(exc)
    result = booking.extend_reservation(current_actor(), reservation_id, new_end)
    return _reply(result, reservation_json(result.data) if result.success else None)


@bp.post("/reservations/<int:reservation_id>/end")
def end_reservation(reservation_id: int):
    result = booking.end_early(current_actor(), reservation_id)
    return _reply(result, reservation_json(result.data) if result.success else None)


@bp.post("/reservations/<int:reservation_id>/check-in")
def check_in(reservation_id: int):
    result = booking.check_in(current_actor(), reservation_id)
    return _reply(result, reservation_json(result.data) if result.success else None)


@bp.get("/stats")
@api_login_required
def stats():
    return jsonify(schedule.dashboard_stats(current_actor()))


@bp.get("/analytics")
@api_login_required
def analytics():
    if not current_user.is_admin:
        return _reply(ServiceResult.fail(FORBIDDEN))
    return jsonify(schedule.analytics_summary())


@bp.post("/sync")
def sheet_sync():
    result = sync.synchronize(current_actor())
    return _reply(result, result.data.to_dict() if result.success else None)
