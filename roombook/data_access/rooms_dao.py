"""Data access helpers for meeting rooms."""

from __future__ import annotations

import json
from typing import Iterable, Optional

from ..models.entities import CATEGORY_PUBLIC, ROOM_CATEGORIES, Room
from ..services.timezone import from_storage
from .db import execute, get_db, query_all, query_one


def _row_to_room(row) -> Room:
    return Room(
        room_id=row["room_id"],
        name=row["name"],
        category=row["category"],
        capacity=row["capacity"],
        facilities=json.loads(row["facilities"] or "[]"),
        description=row["description"],
        is_active=bool(row["is_active"]),
        created_at=from_storage(row["created_at"]),
    )


def _encode_facilities(facilities: Iterable[str]) -> str:
    cleaned = sorted({item.strip() for item in facilities if item and item.strip()})
    return json.dumps(cleaned)


def create_room(
    name: str,
    capacity: int,
    category: str = CATEGORY_PUBLIC,
    facilities: Iterable[str] = (),
    description: Optional[str] = None,
    is_active: bool = True,
) -> Room:
    """Insert a new room."""

    if category not in ROOM_CATEGORIES:
        raise ValueError(f"Unsupported room category '{category}'")

    db = get_db()
    cursor = execute(
        db,
        """
        INSERT INTO rooms (name, category, capacity, facilities, description, is_active)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (name, category, capacity, _encode_facilities(facilities), description, int(is_active)),
    )
    return get_room_by_id(cursor.lastrowid, connection=db)


def get_room_by_id(room_id: int, connection=None) -> Room | None:
    """Fetch a room regardless of its active flag."""

    db = connection or get_db()
    row = query_one(db, "SELECT * FROM rooms WHERE room_id = ?", (room_id,))
    return _row_to_room(row) if row else None


def get_room_by_name(name: str) -> Room | None:
    db = get_db()
    row = query_one(db, "SELECT * FROM rooms WHERE name = ?", (name.strip(),))
    return _row_to_room(row) if row else None


def list_rooms(include_inactive: bool = False) -> list[Room]:
    """Return rooms ordered by name, active ones only by default."""

    db = get_db()
    query = "SELECT * FROM rooms"
    if not include_inactive:
        query += " WHERE is_active = 1"
    query += " ORDER BY name"
    return [_row_to_room(row) for row in query_all(db, query)]


def update_room(room_id: int, **fields) -> None:
    """Update mutable fields for a room."""

    allowed = {"name", "category", "capacity", "facilities", "description", "is_active"}
    updates = {key: value for key, value in fields.items() if key in allowed}
    if not updates:
        return
    if "category" in updates and updates["category"] not in ROOM_CATEGORIES:
        raise ValueError(f"Unsupported room category '{updates['category']}'")
    if "facilities" in updates:
        updates["facilities"] = _encode_facilities(updates["facilities"])
    if "is_active" in updates:
        updates["is_active"] = int(bool(updates["is_active"]))

    columns = ", ".join(f"{key} = ?" for key in updates.keys())
    params = list(updates.values()) + [room_id]
    db = get_db()
    execute(db, f"UPDATE rooms SET {columns} WHERE room_id = ?", params)


def set_active(room_id: int, is_active: bool) -> None:
    """Soft (de)activation; reservations are kept either way."""

    update_room(room_id, is_active=is_active)
