"""Registration, admin user management and profile updates."""

from __future__ import annotations

import sqlite3
from typing import Optional

from flask import current_app

from ..data_access import users_dao
from ..models.entities import ROLE_EMPLOYEE, ROLE_SUPER_ADMIN, ROLES, Actor
from .results import (
    EMAIL_TAKEN,
    FORBIDDEN,
    INVALID_INPUT,
    UNAUTHORIZED,
    USER_NOT_FOUND,
    ServiceResult,
)
from .view_cache import invalidate_reservation_views

MIN_PASSWORD_LENGTH = 6
NAME_MAX_LENGTH = 100
STATUS_MAX_LENGTH = 60
BIO_MAX_LENGTH = 200
AVATAR_UPLOAD_PREFIX = "/uploads/avatars/"
AVATAR_PRESETS = (
    "gradient-violet",
    "gradient-blue",
    "gradient-emerald",
    "gradient-orange",
    "gradient-pink",
    "gradient-indigo",
)


def _require_admin(actor: Optional[Actor]) -> Optional[ServiceResult]:
    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    if not actor.is_admin:
        return ServiceResult.fail(FORBIDDEN, "Only admins can manage users.")
    return None


def _password_problem(password: str) -> Optional[ServiceResult]:
    if len(password) < MIN_PASSWORD_LENGTH:
        return ServiceResult.fail(
            INVALID_INPUT, f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
        )
    return None


def register_user(name: str, email: str, password: str) -> ServiceResult:
    """Self-service sign-up; always creates an EMPLOYEE."""

    name, email = (name or "").strip(), (email or "").strip()
    if not name or not email or not password:
        return ServiceResult.fail(INVALID_INPUT, "All fields are required.")
    problem = _password_problem(password)
    if problem is not None:
        return problem
    if users_dao.get_user_by_email(email):
        return ServiceResult.fail(EMAIL_TAKEN)
    user = users_dao.create_user(name, email, users_dao.hash_password(password), role=ROLE_EMPLOYEE)
    current_app.logger.info(f"Registered user {user.user_id}")
    return ServiceResult.ok(user)


def list_user_accounts(actor: Optional[Actor]) -> ServiceResult:
    """Users newest first, each paired with their reservation count."""

    denied = _require_admin(actor)
    if denied is not None:
        return denied
    counts = users_dao.reservation_counts()
    return ServiceResult.ok([(user, counts.get(user.user_id, 0)) for user in users_dao.list_users()])


def create_user_account(
    actor: Optional[Actor],
    name: str,
    email: str,
    password: str,
    role: str = ROLE_EMPLOYEE,
) -> ServiceResult:
    denied = _require_admin(actor)
    if denied is not None:
        return denied
    name, email = (name or "").strip(), (email or "").strip()
    if not name or not email or not password:
        return ServiceResult.fail(INVALID_INPUT, "All fields are required.")
    if role not in ROLES:
        return ServiceResult.fail(INVALID_INPUT, f"Unknown role '{role}'.")
    problem = _password_problem(password)
    if problem is not None:
        return problem
    if role == ROLE_SUPER_ADMIN and actor.role != ROLE_SUPER_ADMIN:
        return ServiceResult.fail(FORBIDDEN, "Only a Super Admin can create Super Admin users.")
    if users_dao.get_user_by_email(email):
        return ServiceResult.fail(EMAIL_TAKEN)

    user = users_dao.create_user(name, email, users_dao.hash_password(password), role=role)
    current_app.logger.info(f"User {user.user_id} ({role}) created by admin {actor.user_id}")
    return ServiceResult.ok(user)


def update_user_account(
    actor: Optional[Actor],
    user_id: int,
    name: Optional[str] = None,
    email: Optional[str] = None,
    role: Optional[str] = None,
    password: Optional[str] = None,
) -> ServiceResult:
    """Change name, email, role or password; blank values are left alone."""

    denied = _require_admin(actor)
    if denied is not None:
        return denied
    user = users_dao.get_user_by_id(user_id)
    if user is None:
        return ServiceResult.fail(USER_NOT_FOUND)
    if role and role not in ROLES:
        return ServiceResult.fail(INVALID_INPUT, f"Unknown role '{role}'.")
    if role == ROLE_SUPER_ADMIN and actor.role != ROLE_SUPER_ADMIN:
        return ServiceResult.fail(FORBIDDEN, "Only a Super Admin can assign the Super Admin role.")
    if user.role == ROLE_SUPER_ADMIN and actor.role != ROLE_SUPER_ADMIN:
        return ServiceResult.fail(FORBIDDEN, "Only a Super Admin can edit Super Admin users.")

    updates: dict[str, str] = {}
    if name and name.strip():
        updates["name"] = name.strip()
    if email and email.strip().lower() != user.email.lower():
        if users_dao.get_user_by_email(email):
            return ServiceResult.fail(EMAIL_TAKEN, "Email already in use.")
        updates["email"] = email
    if role:
        updates["role"] = role
    if password:
        problem = _password_problem(password)
        if problem is not None:
            return problem
        updates["password_hash"] = users_dao.hash_password(password)

    try:
        users_dao.update_user(user_id, **updates)
    except sqlite3.IntegrityError:
        return ServiceResult.fail(EMAIL_TAKEN, "Email already in use.")
    current_app.logger.info(f"User {user_id} updated by admin {actor.user_id}: {sorted(updates)}")
    return ServiceResult.ok(users_dao.get_user_by_id(user_id))


def delete_user_account(actor: Optional[Actor], user_id: int) -> ServiceResult:
    """Remove a user and, through the cascade, their reservations."""

    denied = _require_admin(actor)
    if denied is not None:
        return denied
    user = users_dao.get_user_by_id(user_id)
    if user is None:
        return ServiceResult.fail(USER_NOT_FOUND)
    if user.role == ROLE_SUPER_ADMIN:
        return ServiceResult.fail(FORBIDDEN, "Super Admin users cannot be deleted.")
    if user_id == actor.user_id:
        return ServiceResult.fail(FORBIDDEN, "You cannot delete your own account.")

    users_dao.delete_user(user_id)
    invalidate_reservation_views()
    current_app.logger.info(f"User {user_id} deleted by admin {actor.user_id}")
    return ServiceResult.ok(user)


def update_profile(
    actor: Optional[Actor],
    name: Optional[str] = None,
    avatar: Optional[str] = None,
    status_text: Optional[str] = None,
    bio: Optional[str] = None,
) -> ServiceResult:
    """Self-service profile fields; over-long text is truncated, unknown avatars ignored."""

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    updates: dict[str, str] = {}
    if name is not None and name.strip():
        updates["name"] = name.strip()[:NAME_MAX_LENGTH]
    if avatar is not None and (
        avatar == "" or avatar.startswith(AVATAR_UPLOAD_PREFIX) or avatar in AVATAR_PRESETS
    ):
        updates["avatar"] = avatar
    if status_text is not None:
        updates["status_text"] = status_text[:STATUS_MAX_LENGTH]
    if bio is not None:
        updates["bio"] = bio[:BIO_MAX_LENGTH]
    users_dao.update_user(actor.user_id, **updates)
    return ServiceResult.ok(users_dao.get_user_by_id(actor.user_id))


def set_user_active(actor: Optional[Actor], user_id: int, active: bool) -> ServiceResult:
    """Block or restore sign-in without touching the user's reservations."""

    denied = _require_admin(actor)
    if denied is not None:
        return denied
    user = users_dao.get_user_by_id(user_id)
    if user is None:
        return ServiceResult.fail(USER_NOT_FOUND)
    if user_id == actor.user_id:
        return ServiceResult.fail(FORBIDDEN, "You cannot deactivate your own account.")
    if user.role == ROLE_SUPER_ADMIN and actor.role != ROLE_SUPER_ADMIN:
        return ServiceResult.fail(FORBIDDEN, "Only a Super Admin can edit Super Admin users.")
    if user.is_active == active:
        return ServiceResult.ok(user, changed=False, message="Nothing to change.")

    if active:
        users_dao.activate_user(user_id)
    else:
        users_dao.deactivate_user(user_id)
    current_app.logger.info(
        f"User {user_id} {'activated' if active else 'deactivated'} by admin {actor.user_id}"
    )
    return ServiceResult.ok(users_dao.get_user_by_id(user_id))
