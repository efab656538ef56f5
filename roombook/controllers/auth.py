"""Authentication blueprint handling registration, login, logout and profile."""

from __future__ import annotations

from functools import wraps
from typing import Callable

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf import FlaskForm
from wtforms import PasswordField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import Email, EqualTo, InputRequired, Length, Optional

from ..data_access import users_dao
from ..models.entities import ROLES, Actor
from ..services import accounts
from ..services.results import INVALID_STATE, SLOT_UNAVAILABLE, ServiceResult

bp = Blueprint("auth", __name__, url_prefix="/auth", template_folder="../views")


class RegistrationForm(FlaskForm):
    """Self-service sign-up; new accounts are always employees."""

    name = StringField("Full Name", validators=[InputRequired(), Length(max=accounts.NAME_MAX_LENGTH)])
    email = StringField("Email", validators=[InputRequired(), Email(), Length(max=255)])
    password = PasswordField(
        "Password",
        validators=[InputRequired(), Length(min=accounts.MIN_PASSWORD_LENGTH, max=128)],
    )
    confirm_password = PasswordField(
        "Confirm Password",
        validators=[InputRequired(), EqualTo("password", message="Passwords must match.")],
    )
    submit = SubmitField("Create account")


class LoginForm(FlaskForm):
    """Basic credential form."""

    email = StringField("Email", validators=[InputRequired(), Email()])
    password = PasswordField("Password", validators=[InputRequired()])
    submit = SubmitField("Sign in")


class ProfileForm(FlaskForm):
    name = StringField("Display Name", validators=[InputRequired(), Length(max=accounts.NAME_MAX_LENGTH)])
    avatar = SelectField(
        "Avatar",
        choices=[("", "Initials")] + [(preset, preset.split("-", 1)[1].title()) for preset in accounts.AVATAR_PRESETS],
        validators=[Optional()],
        default="",
    )
    status_text = StringField("Status", validators=[Optional(), Length(max=accounts.STATUS_MAX_LENGTH)])
    bio = TextAreaField("Bio", validators=[Optional(), Length(max=accounts.BIO_MAX_LENGTH)])
    submit = SubmitField("Save profile")


def role_required(*roles: str) -> Callable:
    """Decorator enforcing role-based access control."""

    allowed_roles = tuple(role for role in roles if role in ROLES)

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if allowed_roles and current_user.role not in allowed_roles:
                abort(403)
            return view(*args, **kwargs)

        return wrapped

    return decorator


def current_actor() -> Actor | None:
    """The signed-in user as the explicit identity handed to services."""

    return Actor.from_user(current_user)


def flash_result(result: ServiceResult, success_message: str | None = None) -> None:
    """Flash a service outcome: errors as danger/warning, successes as success/info."""

    if result.success:
        if not result.changed:
            flash(result.message or "Nothing to change.", "info")
        elif success_message:
            flash(success_message, "success")
        return
    category = "warning" if result.error in {SLOT_UNAVAILABLE, INVALID_STATE} else "danger"
    flash(result.message, category)


@bp.route("/register", methods=["GET", "POST"])
def register():
    """Handle new user registration."""

    if current_user.is_authenticated:
        flash("You are already signed in.", "info")
        return redirect(url_for("index"))

    form = RegistrationForm()
    if form.validate_on_submit():
        result = accounts.register_user(form.name.data, form.email.data, form.password.data)
        if result.success:
            login_user(result.data)
            flash("Welcome to RoomBook!", "success")
            return redirect(url_for("index"))
        form.email.errors.append(result.message)
    return render_template("auth_register.html", form=form)


@bp.route("/login", methods=["GET", "POST"])
def login():
    """Authenticate an existing user."""

    if current_user.is_authenticated:
        flash("You are already signed in.", "info")
        return redirect(url_for("index"))

    form = LoginForm()
    if form.validate_on_submit():
        user = users_dao.get_user_by_email(form.email.data)
        if not user or not users_dao.verify_password(user.password_hash, form.password.data):
            form.email.errors.append("Invalid credentials. Please try again.")
        elif not user.is_active:
            form.email.errors.append("This account has been deactivated. Contact an admin.")
        else:
            login_user(user)
            flash("Signed in successfully.", "success")
            next_url = request.args.get("next")
            if next_url and next_url.startswith("/"):
                return redirect(next_url)
            return redirect(url_for("index"))
    return render_template("auth_login.html", form=form)


@bp.route("/logout")
@login_required
def logout():
    """Log out the current user."""

    logout_user()
    flash("You have been signed out.", "info")
    return redirect(url_for("auth.login"))


@bp.route("/profile", methods=["GET", "POST"])
@login_required
def profile():
    """Show and edit the signed-in user's profile."""

    form = ProfileForm(obj=current_user)
    if form.validate_on_submit():
        result = accounts.update_profile(
            current_actor(),
            name=form.name.data,
            avatar=form.avatar.data or "",
            status_text=form.status_text.data or "",
            bio=form.bio.data or "",
        )
        flash_result(result, "Profile updated.")
        if result.success:
            return redirect(url_for("auth.profile"))
    return render_template("profile.html", form=form)
