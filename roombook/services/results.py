"""Discriminated results returned by every service operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
ROOM_INACTIVE = "ROOM_INACTIVE"
INVALID_WINDOW = "INVALID_WINDOW"
CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
NOT_FOUND = "NOT_FOUND"
INVALID_STATE = "INVALID_STATE"
USER_NOT_FOUND = "USER_NOT_FOUND"
EMAIL_TAKEN = "EMAIL_TAKEN"
INVALID_INPUT = "INVALID_INPUT"
SYNC_NOT_CONFIGURED = "SYNC_NOT_CONFIGURED"

MESSAGES = {
    UNAUTHORIZED: "Please sign in to continue.",
    FORBIDDEN: "You don't have permission to do that. Contact an admin.",
    ROOM_NOT_FOUND: "That room does not exist.",
    ROOM_INACTIVE: "That room is not currently available for booking.",
    INVALID_WINDOW: "Choose an end time after the start time, and a start time that is not in the past.",
    CAPACITY_EXCEEDED: "Too many participants for this room.",
    SLOT_UNAVAILABLE: "This time slot is already booked. Please choose another time.",
    NOT_FOUND: "Reservation not found.",
    INVALID_STATE: "The reservation cannot be changed that way right now.",
    USER_NOT_FOUND: "User not found.",
    EMAIL_TAKEN: "Email already registered.",
    INVALID_INPUT: "Some of the submitted values are invalid.",
    SYNC_NOT_CONFIGURED: "The external sheet is not configured.",
}

# HTTP status for JSON callers.
HTTP_STATUS = {
    UNAUTHORIZED: 401,
    FORBIDDEN: 403,
    ROOM_NOT_FOUND: 404,
    NOT_FOUND: 404,
    USER_NOT_FOUND: 404,
    ROOM_INACTIVE: 409,
    SLOT_UNAVAILABLE: 409,
    INVALID_STATE: 409,
    EMAIL_TAKEN: 409,
    INVALID_WINDOW: 400,
    CAPACITY_EXCEEDED: 400,
    INVALID_INPUT: 400,
    SYNC_NOT_CONFIGURED: 503,
}


@dataclass(frozen=True)
class ServiceResult:
    """Either ``success`` with ``data`` or an ``error`` code with a message."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None
    changed: bool = True

    @classmethod
    def ok(cls, data: Any = None, *, changed: bool = True, message: Optional[str] = None) -> "ServiceResult":
        return cls(success=True, data=data, changed=changed, message=message)

    @classmethod
    def fail(cls, error: str, message: Optional[str] = None, data: Any = None) -> "ServiceResult":
        return cls(success=False, data=data, error=error, message=message or MESSAGES[error], changed=False)

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        return HTTP_STATUS.get(self.error or "", 400)

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            payload: dict[str, Any] = {"success": True, "changed": self.changed}
            if self.message:
                payload["message"] = self.message
            return payload
        return {"error": self.error, "message": self.message}
