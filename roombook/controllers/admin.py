"""Administrative routes: users, rooms, sheet sync and analytics."""

from __future__ import annotations

import sqlite3

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, url_for
from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, PasswordField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import Email, InputRequired, Length, NumberRange, Optional

from ..data_access import rooms_dao, users_dao
from ..models.entities import CATEGORY_PUBLIC, ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_SUPER_ADMIN, ROLES, ROOM_CATEGORIES
from ..services import accounts, schedule, sync
from ..services.view_cache import invalidate_reservation_views
from .auth import current_actor, flash_result, role_required

bp = Blueprint("admin", __name__, url_prefix="/admin", template_folder="../views")

ADMIN_ONLY = (ROLE_ADMIN, ROLE_SUPER_ADMIN)


class UserForm(FlaskForm):
    """Create or edit an account; the password may stay blank when editing."""

    name = StringField("Full Name", validators=[InputRequired(), Length(max=accounts.NAME_MAX_LENGTH)])
    email = StringField("Email", validators=[InputRequired(), Email(), Length(max=255)])
    role = SelectField("Role", choices=[(role, role.replace("_", " ").title()) for role in ROLES], default=ROLE_EMPLOYEE)
    password = PasswordField("Password", validators=[Optional(), Length(min=accounts.MIN_PASSWORD_LENGTH, max=128)])
    submit = SubmitField("Save user")


class RoomForm(FlaskForm):
    name = StringField("Room name", validators=[InputRequired(), Length(max=120)])
    category = SelectField(
        "Category",
        choices=[(category, category.title()) for category in ROOM_CATEGORIES],
        default=CATEGORY_PUBLIC,
    )
    capacity = IntegerField("Capacity", validators=[InputRequired(), NumberRange(min=1)])
    facilities = StringField("Facilities (comma separated)", validators=[Optional(), Length(max=500)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=1000)])
    is_active = BooleanField("Available for booking", default=True)
    submit = SubmitField("Save room")


class SyncForm(FlaskForm):
    submit = SubmitField("Sync now")


def _role_choices(form: UserForm) -> None:
    if not current_actor() or current_actor().role != ROLE_SUPER_ADMIN:
        form.role.choices = [choice for choice in form.role.choices if choice[0] != ROLE_SUPER_ADMIN]


def _facilities(raw: str | None) -> list[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


@bp.route("/")
@role_required(*ADMIN_ONLY)
def dashboard():
    """Admin landing page with the usage analytics."""

    return render_template("admin_analytics.html", analytics=schedule.analytics_summary())


@bp.route("/users")
@role_required(*ADMIN_ONLY)
def users():
    """List all users with their reservation counts."""

    result = accounts.list_user_accounts(current_actor())
    if not result.success:
        abort(result.http_status)
    return render_template("admin_users.html", rows=result.data)


@bp.route("/users/new", methods=["GET", "POST"])
@role_required(*ADMIN_ONLY)
def create_user():
    form = UserForm()
    _role_choices(form)
    if form.validate_on_submit():
        result = accounts.create_user_account(
            current_actor(), form.name.data, form.email.data, form.password.data or "", form.role.data
        )
        flash_result(result, "User created.")
        if result.success:
            return redirect(url_for("admin.users"))
    return render_template("admin_user_form.html", form=form, user=None)


@bp.route("/users/<int:user_id>/edit", methods=["GET", "POST"])
@role_required(*ADMIN_ONLY)
def edit_user(user_id: int):
    user = users_dao.get_user_by_id(user_id)
    if not user:
        abort(404)
    form = UserForm(obj=user)
    _role_choices(form)
    if user.role == ROLE_SUPER_ADMIN and not any(choice[0] == ROLE_SUPER_ADMIN for choice in form.role.choices):
        form.role.choices.append((ROLE_SUPER_ADMIN, "Super Admin"))
    if form.validate_on_submit():
        result = accounts.update_user_account(
            current_actor(),
            user_id,
            name=form.name.data,
            email=form.email.data,
            role=form.role.data,
            password=form.password.data or None,
        )
        flash_result(result, "User updated.")
        if result.success:
            return redirect(url_for("admin.users"))
    return render_template("admin_user_form.html", form=form, user=user)


@bp.route("/users/<int:user_id>/delete", methods=["POST"])
@role_required(*ADMIN_ONLY)
def delete_user(user_id: int):
    result = accounts.delete_user_account(current_actor(), user_id)
    flash_result(result, "User deleted along with their reservations.")
    return redirect(url_for("admin.users"))


@bp.route("/users/<int:user_id>/toggle", methods=["POST"])
@role_required(*ADMIN_ONLY)
def toggle_user(user_id: int):
    """Deactivate or reactivate sign-in for a user."""

    user = users_dao.get_user_by_id(user_id)
    if not user:
        abort(404)
    result = accounts.set_user_active(current_actor(), user_id, not user.is_active)
    flash_result(result, f"{user.name} {'deactivated' if user.is_active else 'reactivated'}.")
    return redirect(url_for("admin.users"))


@bp.route("/rooms")
@role_required(*ADMIN_ONLY)
def rooms():
    """Every room, including deactivated ones."""

    return render_template("admin_rooms.html", rooms=rooms_dao.list_rooms(include_inactive=True))


@bp.route("/rooms/new", methods=["GET", "POST"])
@role_required(*ADMIN_ONLY)
def create_room():
    form = RoomForm()
    if form.validate_on_submit():
        try:
            room = rooms_dao.create_room(
                name=form.name.data.strip(),
                capacity=form.capacity.data,
                category=form.category.data,
                facilities=_facilities(form.facilities.data),
                description=form.description.data or None,
                is_active=form.is_active.data,
            )
        except sqlite3.IntegrityError:
            form.name.errors.append("A room with that name already exists.")
        else:
            current_app.logger.info(f"Room {room.room_id} created by admin {current_actor().user_id}")
            invalidate_reservation_views()
            flash("Room created.", "success")
            return redirect(url_for("admin.rooms"))
    return render_template("admin_room_form.html", form=form, room=None)


@bp.route("/rooms/<int:room_id>/edit", methods=["GET", "POST"])
@role_required(*ADMIN_ONLY)
def edit_room(room_id: int):
    room = rooms_dao.get_room_by_id(room_id)
    if not room:
        abort(404)
    form = RoomForm(obj=room)
    if request.method == "GET":
        form.facilities.data = ", ".join(room.facilities)
    if form.validate_on_submit():
        try:
            rooms_dao.update_room(
                room_id,
                name=form.name.data.strip(),
                capacity=form.capacity.data,
                category=form.category.data,
                facilities=_facilities(form.facilities.data),
                description=form.description.data or None,
                is_active=form.is_active.data,
            )
        except sqlite3.IntegrityError:
            form.name.errors.append("A room with that name already exists.")
        else:
            current_app.logger.info(f"Room {room_id} updated by admin {current_actor().user_id}")
            invalidate_reservation_views()
            flash("Room updated.", "success")
            return redirect(url_for("admin.rooms"))
    return render_template("admin_room_form.html", form=form, room=room)


@bp.route("/rooms/<int:room_id>/toggle", methods=["POST"])
@role_required(*ADMIN_ONLY)
def toggle_room(room_id: int):
    """Deactivate or reactivate a room; existing reservations are kept."""

    room = rooms_dao.get_room_by_id(room_id)
    if not room:
        abort(404)
    rooms_dao.set_active(room_id, not room.is_active)
    invalidate_reservation_views()
    state = "reactivated" if not room.is_active else "deactivated"
    current_app.logger.info(f"Room {room_id} {state} by admin {current_actor().user_id}")
    flash(f"{room.name} {state}.", "info")
    return redirect(url_for("admin.rooms"))


@bp.route("/sync", methods=["GET", "POST"])
@role_required(*ADMIN_ONLY)
def sheet_sync():
    """Run a two-way sync with the configured workbook."""

    form = SyncForm()
    report = None
    if form.validate_on_submit():
        result = sync.synchronize(current_actor())
        if result.success:
            report = result.data
            flash(
                f"Sync finished: {report.synced} imported, {report.pushed} pushed, "
                f"{report.skipped} skipped, {report.errors} errors.",
                "success" if not report.errors else "warning",
            )
        else:
            flash_result(result)
    return render_template(
        "admin_sync.html",
        form=form,
        report=report,
        configured=bool(current_app.config.get("SHEET_DIRECTORY")),
    )
