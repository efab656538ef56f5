"""Deterministic seed data for RoomBook."""

from __future__ import annotations

import json
from datetime import datetime, time, timedelta

from ..models.entities import (
    CATEGORY_PUBLIC,
    CATEGORY_SPECIAL,
    ROLE_ADMIN,
    ROLE_EMPLOYEE,
    ROLE_SUPER_ADMIN,
)
from ..services.timezone import local_today, to_instant, to_storage
from .db import execute, get_db, query_one
from .users_dao import hash_password

SEED_PASSWORD = "Password123!"

USERS = [
    ("Rina Super Admin", "superadmin@roombook.id", ROLE_SUPER_ADMIN),
    ("Ayu Admin", "admin@roombook.id", ROLE_ADMIN),
    ("Sari Employee", "sari@roombook.id", ROLE_EMPLOYEE),
    ("Budi Employee", "budi@roombook.id", ROLE_EMPLOYEE),
]

ROOMS = [
    {
        "name": "Jakarta Room",
        "category": CATEGORY_PUBLIC,
        "capacity": 8,
        "facilities": ["TV", "Whiteboard", "Video Conference"],
        "description": "Mid-size meeting room on the 3rd floor.",
        "is_active": True,
    },
    {
        "name": "Bandung Room",
        "category": CATEGORY_PUBLIC,
        "capacity": 4,
        "facilities": ["Whiteboard"],
        "description": "Huddle room for quick syncs.",
        "is_active": True,
    },
    {
        "name": "Board Room",
        "category": CATEGORY_SPECIAL,
        "capacity": 16,
        "facilities": ["Projector", "Video Conference", "Sound System"],
        "description": "Executive meetings; bookable by admins only.",
        "is_active": True,
    },
    {
        "name": "Archive Room",
        "category": CATEGORY_PUBLIC,
        "capacity": 6,
        "facilities": [],
        "description": "Closed for renovation.",
        "is_active": False,
    },
]


def seed() -> None:
    """Populate the database with representative demo records."""

    db = get_db()
    password_hash = hash_password(SEED_PASSWORD)

    for name, email, role in USERS:
        execute(
            db,
            """
            INSERT OR IGNORE INTO users (name, email, password_hash, role, is_active)
            VALUES (?, ?, ?, ?, 1)
            """,
            (name, email, password_hash, role),
        )

    for room in ROOMS:
        execute(
            db,
            """
            INSERT OR IGNORE INTO rooms (name, category, capacity, facilities, description, is_active)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                room["name"],
                room["category"],
                room["capacity"],
                json.dumps(sorted(room["facilities"])),
                room["description"],
                int(room["is_active"]),
            ),
        )

    def _user_id(email: str) -> int:
        row = query_one(db, "SELECT user_id FROM users WHERE email = ?", (email,))
        if not row:
            raise ValueError(f"Expected seed user {email} to exist.")
        return row["user_id"]

    def _room_id(name: str) -> int:
        row = query_one(db, "SELECT room_id FROM rooms WHERE name = ?", (name,))
        if not row:
            raise ValueError(f"Expected seed room {name} to exist.")
        return row["room_id"]

    tomorrow = local_today() + timedelta(days=1)

    def _at(hour: int, minute: int = 0) -> datetime:
        return to_instant(datetime.combine(tomorrow, time(hour, minute)))

    reservations = [
        ("Jakarta Room", "sari@roombook.id", "Sprint Planning", _at(9), _at(10), 6),
        ("Bandung Room", "budi@roombook.id", "1:1 Sync", _at(11), _at(11, 30), 2),
        ("Board Room", "admin@roombook.id", "Quarterly Review", _at(13), _at(14, 30), 12),
    ]
    for room_name, email, title, start, end, participants in reservations:
        room_id = _room_id(room_name)
        existing = query_one(
            db,
            "SELECT reservation_id FROM reservations WHERE room_id = ? AND start_time = ?",
            (room_id, to_storage(start)),
        )
        if existing:
            continue
        execute(
            db,
            """
            INSERT INTO reservations (room_id, user_id, title, start_time, end_time, participant_count)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (room_id, _user_id(email), title, to_storage(start), to_storage(end), participants),
        )
