"""Best-effort booking e-mails delivered through Flask-Mail.

Delivery never feeds back into the booking that triggered it: failures are
logged and dropped.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import Flask, current_app
from flask_mail import Message

from ..models.entities import Reservation, Room, User
from .timezone import format_local

BOOKING_CONFIRMED = "BookingConfirmed"
BOOKING_CANCELLED = "BookingCancelled"


@dataclass(frozen=True)
class BookingNotice:
    user_name: str
    user_email: str
    room_name: str
    title: str
    start_time: datetime
    end_time: datetime


def notice_for(reservation: Reservation, room: Room, user: User) -> BookingNotice:
    return BookingNotice(
        user_name=user.name,
        user_email=user.email,
        room_name=room.name,
        title=reservation.title,
        start_time=reservation.start_time,
        end_time=reservation.end_time,
    )


def build_message(event: str, notice: BookingNotice) -> Message:
    confirmed = event == BOOKING_CONFIRMED
    headline = "Booking Confirmed" if confirmed else "Booking Cancelled"
    zone_name = current_app.config["TIMEZONE"]
    date_str = format_local(notice.start_time, "%A, %d %B %Y")
    time_str = f"{format_local(notice.start_time, '%H:%M')} - {format_local(notice.end_time, '%H:%M')}"
    lead = (
        "Your meeting room booking has been confirmed."
        if confirmed
        else "Your meeting room booking has been cancelled."
    )
    body = "\n".join(
        [
            f"Hi {notice.user_name},",
            "",
            lead,
            "",
            f"Room:    {notice.room_name}",
            f"Meeting: {notice.title}",
            f"Date:    {date_str}",
            f"Time:    {time_str} ({zone_name})",
            f"Status:  {'CONFIRMED' if confirmed else 'CANCELLED'}",
        ]
    )
    return Message(
        subject=f"{headline}: {notice.title} - {notice.room_name}",
        recipients=[notice.user_email],
        body=body,
    )


class NotificationDispatcher:
    """Hands notices to a worker pool, or delivers inline when configured."""

    def __init__(self, app: Flask | None = None, max_workers: int = 2) -> None:
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["notifications"] = self

    def notify(self, event: str, notice: BookingNotice) -> Optional[Future]:
        """Attempt delivery; never raises for delivery problems."""

        app = current_app._get_current_object()  # pylint: disable=protected-access
        if app.config.get("NOTIFICATIONS_ASYNC", True):
            return self._pool().submit(self._deliver, app, event, notice)
        self._deliver(app, event, notice)
        return None

    def _pool(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="roombook-mail"
            )
        return self._executor

    def _deliver(self, app: Flask, event: str, notice: BookingNotice) -> None:
        with app.app_context():
            mail = app.extensions.get("mail")
            if mail is None:
                app.logger.warning("Flask-Mail not initialised; skipping booking notification")
                return
            try:
                mail.send(build_message(event, notice))
            except Exception:  # pylint: disable=broad-except
                app.logger.error(f"Failed to send {event} email to {notice.user_email}", exc_info=True)
                return
            app.logger.info(f"Sent {event} email to {notice.user_email}")

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


def notify(event: str, notice: BookingNotice) -> None:
    current_app.extensions["notifications"].notify(event, notice)
