"""Dataclass-style entity representations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from flask_login import UserMixin

ROLE_EMPLOYEE = "EMPLOYEE"
ROLE_ADMIN = "ADMIN"
ROLE_SUPER_ADMIN = "SUPER_ADMIN"
# Ordered from least to most privileged.
ROLES = (ROLE_EMPLOYEE, ROLE_ADMIN, ROLE_SUPER_ADMIN)
ADMIN_ROLES = frozenset({ROLE_ADMIN, ROLE_SUPER_ADMIN})

CATEGORY_PUBLIC = "PUBLIC"
CATEGORY_SPECIAL = "SPECIAL"
ROOM_CATEGORIES = (CATEGORY_PUBLIC, CATEGORY_SPECIAL)

STATUS_CONFIRMED = "CONFIRMED"
STATUS_CANCELLED = "CANCELLED"

CHECK_IN_PENDING = "PENDING"
CHECK_IN_CHECKED_IN = "CHECKED_IN"
CHECK_IN_MISSED = "MISSED"


@dataclass
class User(UserMixin):
    """User entity compatible with Flask-Login."""

    user_id: int
    name: str
    email: str
    password_hash: str
    role: str
    avatar: Optional[str]
    status_text: Optional[str]
    bio: Optional[str]
    created_at: datetime
    is_active: bool = True
    external_row_id: Optional[str] = None

    def get_id(self) -> str:
        return str(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN


@dataclass
class Room:
    """Bookable meeting room."""

    room_id: int
    name: str
    category: str
    capacity: int
    facilities: list[str] = field(default_factory=list)
    description: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_special(self) -> bool:
        return self.category == CATEGORY_SPECIAL


@dataclass
class Reservation:
    """A room reservation; start and end are timezone-aware UTC instants."""

    reservation_id: int
    room_id: int
    user_id: int
    title: str
    description: Optional[str]
    start_time: datetime
    end_time: datetime
    participant_count: int
    status: str
    check_in_status: str
    external_row_id: Optional[str]
    last_modified_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status != STATUS_CANCELLED

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval overlap; touching endpoints do not overlap."""

        return self.start_time < end and start < self.end_time


@dataclass(frozen=True)
class Actor:
    """Identity a request acts as, supplied explicitly to every service call."""

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @classmethod
    def from_user(cls, user) -> Optional["Actor"]:
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return cls(user_id=user.user_id, role=user.role)
