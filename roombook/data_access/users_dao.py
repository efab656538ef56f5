"""Data access helpers for the users table."""

from __future__ import annotations

from typing import Optional

import bcrypt

from ..models.entities import ROLE_EMPLOYEE, ROLES, User
from ..services.timezone import from_storage
from .db import execute, get_db, query_all, query_one

ALLOWED_ROLES = set(ROLES)


def _row_to_user(row) -> User:
    return User(
        user_id=row["user_id"],
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=row["role"],
        avatar=row["avatar"],
        status_text=row["status_text"],
        bio=row["bio"],
        created_at=from_storage(row["created_at"]),
        is_active=bool(row["is_active"]),
        external_row_id=row["external_row_id"],
    )


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_user(
    name: str,
    email: str,
    password_hash: str,
    role: str = ROLE_EMPLOYEE,
    external_row_id: Optional[str] = None,
) -> User:
    """Insert a new user and return the persisted entity."""

    if role not in ALLOWED_ROLES:
        raise ValueError(f"Unsupported role '{role}'")

    db = get_db()
    cursor = execute(
        db,
        """
        INSERT INTO users (name, email, password_hash, role, external_row_id)
        VALUES (?, ?, ?, ?, ?)
        """,
        (name, email.strip().lower(), password_hash, role, external_row_id),
    )
    return get_user_by_id(cursor.lastrowid, connection=db)


def get_user_by_id(user_id: int, connection=None) -> User | None:
    """Fetch a user by primary key."""

    db = connection or get_db()
    row = query_one(
        db,
        "SELECT * FROM users WHERE user_id = ?",
        (user_id,),
    )
    return _row_to_user(row) if row else None


def get_user_by_email(email: str) -> User | None:
    """Fetch a user by email address, ignoring case."""

    db = get_db()
    row = query_one(
        db,
        "SELECT * FROM users WHERE email = ?",
        (email.strip().lower(),),
    )
    return _row_to_user(row) if row else None


def get_user_by_external_id(external_row_id: str) -> User | None:
    db = get_db()
    row = query_one(db, "SELECT * FROM users WHERE external_row_id = ?", (external_row_id,))
    return _row_to_user(row) if row else None


def list_users(include_inactive: bool = True) -> list[User]:
    """Return all users, optionally filtering out inactive entries."""

    db = get_db()
    query = "SELECT * FROM users"
    if not include_inactive:
        query += " WHERE is_active = 1"
    query += " ORDER BY created_at DESC, user_id DESC"
    return [_row_to_user(row) for row in query_all(db, query)]


def reservation_counts() -> dict[int, int]:
    """Number of reservations (any status) per user id."""

    db = get_db()
    rows = query_all(
        db,
        "SELECT user_id, COUNT(*) AS total FROM reservations GROUP BY user_id",
    )
    return {row["user_id"]: row["total"] for row in rows}


def update_user(user_id: int, **fields) -> None:
    """Update mutable columns for a user."""

    allowed = {"name", "email", "role", "password_hash", "avatar", "status_text", "bio", "external_row_id"}
    updates = {key: value for key, value in fields.items() if key in allowed}
    if not updates:
        return
    if "role" in updates and updates["role"] not in ALLOWED_ROLES:
        raise ValueError(f"Unsupported role '{updates['role']}'")
    if "email" in updates:
        updates["email"] = updates["email"].strip().lower()

    columns = ", ".join(f"{key} = ?" for key in updates.keys())
    params = list(updates.values()) + [user_id]
    db = get_db()
    execute(db, f"UPDATE users SET {columns} WHERE user_id = ?", params)


def deactivate_user(user_id: int) -> None:
    """Block sign-in without removing the account."""

    db = get_db()
    execute(
        db,
        "UPDATE users SET is_active = 0 WHERE user_id = ?",
        (user_id,),
    )


def activate_user(user_id: int) -> None:
    """Reactivate a previously deactivated user."""

    db = get_db()
    execute(
        db,
        "UPDATE users SET is_active = 1 WHERE user_id = ?",
        (user_id,),
    )


def delete_user(user_id: int) -> None:
    """Hard delete; the user's reservations go with it."""

    db = get_db()
    execute(db, "DELETE FROM users WHERE user_id = ?", (user_id,))


def list_users_without_external_id() -> list[User]:
    db = get_db()
    rows = query_all(
        db,
        "SELECT * FROM users WHERE external_row_id IS NULL ORDER BY user_id",
    )
    return [_row_to_user(row) for row in rows]


def verify_password(stored_hash: str, candidate: str) -> bool:
    """Compare a stored hash against a candidate password."""

    if not stored_hash:
        return False
    try:
        return bcrypt.checkpw(candidate.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        return False
