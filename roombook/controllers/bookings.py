"""Reservation workflow blueprint."""

from __future__ import annotations

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from wtforms import DateTimeLocalField, HiddenField, IntegerField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import InputRequired, Length, NumberRange, Optional

from ..data_access import reservations_dao, rooms_dao
from ..services import access_policy, booking, schedule
from ..services.timezone import local_today, to_instant, to_local
from .auth import current_actor, flash_result

bp = Blueprint("bookings", __name__, url_prefix="/bookings", template_folder="../views")

DATETIME_FORMAT = "%Y-%m-%dT%H:%M"


class BookingForm(FlaskForm):
    """Form to reserve a room; times are entered in the deployment zone."""

    room_id = HiddenField("Room", validators=[InputRequired()])
    title = StringField("Meeting title", validators=[InputRequired(), Length(max=200)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=1000)])
    start_time = DateTimeLocalField(
        "Start",
        format=DATETIME_FORMAT,
        validators=[InputRequired(message="Please provide a start time.")],
    )
    end_time = DateTimeLocalField(
        "End",
        format=DATETIME_FORMAT,
        validators=[InputRequired(message="Please provide an end time.")],
    )
    participant_count = IntegerField("Participants", default=1, validators=[Optional(), NumberRange(min=1)])
    submit = SubmitField("Book room")


class ModifyForm(FlaskForm):
    """Edit every mutable field of a reservation at once."""

    room_id = SelectField("Room", coerce=int, validators=[InputRequired()])
    title = StringField("Meeting title", validators=[InputRequired(), Length(max=200)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=1000)])
    start_time = DateTimeLocalField("Start", format=DATETIME_FORMAT, validators=[InputRequired()])
    end_time = DateTimeLocalField("End", format=DATETIME_FORMAT, validators=[InputRequired()])
    participant_count = IntegerField("Participants", validators=[InputRequired(), NumberRange(min=1)])
    submit = SubmitField("Save changes")


class ExtendForm(FlaskForm):
    new_end_time = DateTimeLocalField("New end", format=DATETIME_FORMAT, validators=[InputRequired()])
    submit = SubmitField("Extend")


def _flash_form_errors(form: FlaskForm) -> None:
    for field, errors in form.errors.items():
        for error in errors:
            flash(f"{field}: {error}", "danger")


def _back(default: str) -> str:
    return request.referrer or default


@bp.route("/create", methods=["POST"])
@login_required
def create():
    """Book a room from the schedule page."""

    form = BookingForm()
    room_id = request.form.get("room_id", type=int)
    fallback = url_for("rooms.detail", room_id=room_id) if room_id else url_for("rooms.list_rooms")
    if not form.validate_on_submit() or room_id is None:
        _flash_form_errors(form)
        return redirect(fallback)

    start = to_instant(form.start_time.data)
    result = booking.create_reservation(
        current_actor(),
        room_id,
        form.title.data,
        start,
        to_instant(form.end_time.data),
        participant_count=form.participant_count.data,
        description=form.description.data,
    )
    flash_result(result, "Reservation confirmed. A confirmation email is on its way.")
    if not result.success:
        return redirect(fallback)
    day = to_local(start).date().isoformat()
    return redirect(url_for("rooms.detail", room_id=room_id, date=day))


@bp.route("/my")
@login_required
def my_bookings():
    """Upcoming and past reservations of the current user (all users for admins on request)."""

    show_all = current_user.is_admin and request.args.get("scope") == "all"
    reservations = schedule.list_reservations(
        user_id=None if show_all else current_user.user_id,
        include_cancelled=True,
    )
    rooms = {room.room_id: room for room in rooms_dao.list_rooms(include_inactive=True)}
    return render_template(
        "bookings_my.html",
        reservations=reservations,
        rooms=rooms,
        show_all=show_all,
        extend_form=ExtendForm(),
        today=local_today(),
    )


@bp.route("/<int:reservation_id>/cancel", methods=["POST"])
@login_required
def cancel(reservation_id: int):
    result = booking.cancel_reservation(current_actor(), reservation_id)
    flash_result(result, "Reservation cancelled.")
    return redirect(_back(url_for("bookings.my_bookings")))


@bp.route("/<int:reservation_id>/extend", methods=["POST"])
@login_required
def extend(reservation_id: int):
    form = ExtendForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(_back(url_for("bookings.my_bookings")))
    result = booking.extend_reservation(current_actor(), reservation_id, to_instant(form.new_end_time.data))
    flash_result(result, "Reservation extended.")
    return redirect(_back(url_for("bookings.my_bookings")))


@bp.route("/<int:reservation_id>/end", methods=["POST"])
@login_required
def end_early(reservation_id: int):
    result = booking.end_early(current_actor(), reservation_id)
    flash_result(result, "Meeting ended. The room is free again.")
    return redirect(_back(url_for("bookings.my_bookings")))


@bp.route("/<int:reservation_id>/check-in", methods=["POST"])
@login_required
def check_in(reservation_id: int):
    result = booking.check_in(current_actor(), reservation_id)
    flash_result(result, "Checked in. Enjoy your meeting!")
    return redirect(_back(url_for("bookings.my_bookings")))


@bp.route("/<int:reservation_id>/edit", methods=["GET", "POST"])
@login_required
def edit(reservation_id: int):
    """Modify a reservation's title, room, window or participants."""

    actor = current_actor()
    reservation = reservations_dao.get_reservation_by_id(reservation_id)
    if not reservation:
        abort(404)
    room = rooms_dao.get_room_by_id(reservation.room_id)
    if not room:
        abort(404)
    if not access_policy.can_modify(actor, reservation, room):
        abort(403)

    form = ModifyForm()
    form.room_id.choices = [
        (candidate.room_id, f"{candidate.name} ({candidate.capacity} seats)")
        for candidate in rooms_dao.list_rooms()
        if candidate.room_id == room.room_id or access_policy.can_book(candidate, actor.role)
    ]
    if request.method == "GET":
        form.room_id.data = reservation.room_id
        form.title.data = reservation.title
        form.description.data = reservation.description
        form.start_time.data = to_local(reservation.start_time).replace(tzinfo=None)
        form.end_time.data = to_local(reservation.end_time).replace(tzinfo=None)
        form.participant_count.data = reservation.participant_count
    elif form.validate_on_submit():
        result = booking.modify_reservation(
            actor,
            reservation_id,
            title=form.title.data,
            description=form.description.data or "",
            room_id=form.room_id.data,
            start_time=to_instant(form.start_time.data),
            end_time=to_instant(form.end_time.data),
            participant_count=form.participant_count.data,
        )
        flash_result(result, "Reservation updated.")
        if result.success:
            return redirect(url_for("bookings.my_bookings"))
    else:
        _flash_form_errors(form)
    return render_template("booking_edit.html", form=form, reservation=reservation, room=room)
