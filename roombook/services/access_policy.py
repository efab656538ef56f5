"""Role-gated room access decisions.

Pure functions of the room, the requester's role and the action; no I/O.
"""

from __future__ import annotations

from ..models.entities import ADMIN_ROLES, CATEGORY_PUBLIC, ROLE_EMPLOYEE, Actor, Reservation, Room

BOOK = "book"
MODIFY_OWN = "modify-own"
MODIFY_OTHERS = "modify-others"
CANCEL_OWN = "cancel-own"
CANCEL_OTHERS = "cancel-others"

ACTIONS = frozenset({BOOK, MODIFY_OWN, MODIFY_OTHERS, CANCEL_OWN, CANCEL_OTHERS})
_EMPLOYEE_PUBLIC_ACTIONS = frozenset({BOOK, MODIFY_OWN, CANCEL_OWN})


def can_access(room: Room, user_role: str, action: str) -> bool:
    """Return True when ``user_role`` may perform ``action`` in ``room``."""

    if action not in ACTIONS:
        raise ValueError(f"Unknown room action '{action}'")
    if user_role in ADMIN_ROLES:
        return True
    if user_role != ROLE_EMPLOYEE:
        return False
    return room.category == CATEGORY_PUBLIC and action in _EMPLOYEE_PUBLIC_ACTIONS


def is_owner(actor: Actor, reservation: Reservation) -> bool:
    return actor.user_id == reservation.user_id


def modify_action(actor: Actor, reservation: Reservation) -> str:
    return MODIFY_OWN if is_owner(actor, reservation) else MODIFY_OTHERS


def can_modify(actor: Actor, reservation: Reservation, room: Room) -> bool:
    return can_access(room, actor.role, modify_action(actor, reservation))


def can_cancel(actor: Actor, reservation: Reservation, room: Room) -> bool:
    """The owner or an admin may cancel, whatever the room's category."""

    return is_owner(actor, reservation) or actor.role in ADMIN_ROLES


def can_book(room: Room, user_role: str) -> bool:
    return room.is_active and can_access(room, user_role, BOOK)
