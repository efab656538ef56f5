"""Room catalogue and day schedule routes."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, abort, render_template, request
from flask_login import login_required

from ..data_access import rooms_dao
from ..services import access_policy, schedule
from ..services.timezone import local_today
from .auth import current_actor
from .bookings import BookingForm

bp = Blueprint("rooms", __name__, url_prefix="/rooms", template_folder="../views")


def _requested_day() -> date:
    raw = (request.args.get("date") or "").strip()
    if not raw:
        return local_today()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        abort(400)


@bp.route("/")
@login_required
def list_rooms():
    """List active rooms with live occupancy and the viewer's booking rights."""

    statuses = schedule.list_rooms_for(current_actor())
    category = (request.args.get("category") or "").strip().upper()
    if category:
        statuses = [status for status in statuses if status.room.category == category]
    return render_template("rooms_list.html", statuses=statuses, category=category)


@bp.route("/<int:room_id>")
@login_required
def detail(room_id: int):
    """Show a room's slot grid for one local day, with a booking form."""

    room = rooms_dao.get_room_by_id(room_id)
    if not room or not room.is_active:
        abort(404)
    day = _requested_day()
    timeline = schedule.room_day_timeline(room, day)
    form = BookingForm()
    form.room_id.data = room.room_id
    return render_template(
        "room_schedule.html",
        room=room,
        day=day,
        timeline=timeline,
        form=form,
        can_book=access_policy.can_book(room, current_actor().role),
    )
