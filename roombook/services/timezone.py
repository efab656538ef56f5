"""Conversion between UTC storage instants and the deployment's display zone.

Every instant the application stores or compares is a timezone-aware UTC
``datetime``. Local wall-clock values only appear at the edges: form input,
slot labels and rendered text. The zone is a single deployment-wide setting
(``TIMEZONE``), never a per-user preference.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from dateutil import parser, tz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "Asia/Jakarta"


@dataclass(frozen=True)
class Slot:
    """A fixed-width candidate window on the local day grid."""

    start: datetime
    end: datetime
    label: str


def local_zone() -> tzinfo:
    """Return the configured deployment zone."""

    name = DEFAULT_TIMEZONE
    if has_app_context():
        name = current_app.config.get("TIMEZONE", DEFAULT_TIMEZONE)
    zone = tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown timezone '{name}'")
    return zone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def normalize_instant(value: datetime) -> datetime:
    """Coerce to an aware UTC instant at whole-second precision.

    Naive values are taken to already be UTC.
    """

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


def to_local(instant: datetime) -> datetime:
    """Express an instant as local wall-clock time."""

    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(local_zone())


def to_instant(local: datetime) -> datetime:
    """Convert local wall-clock time to a UTC instant.

    A naive value is interpreted in the deployment zone; an aware value is
    simply converted.
    """

    if local.tzinfo is None:
        local = local.replace(tzinfo=local_zone())
    return normalize_instant(local)


def format_local(instant: datetime, pattern: str) -> str:
    """Presentation only; never compare the returned strings."""

    return to_local(instant).strftime(pattern)


def local_today(now: datetime | None = None) -> date:
    return to_local(now or now_utc()).date()


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Local midnight-to-midnight for ``day`` as UTC instants."""

    start = to_instant(datetime.combine(day, time.min))
    end = to_instant(datetime.combine(day + timedelta(days=1), time.min))
    return start, end


def generate_day_slots(
    day: date,
    start_hour: int = 7,
    end_hour: int = 21,
    step_minutes: int = 30,
) -> list[Slot]:
    """Back-to-back slots covering local ``start_hour`` to ``end_hour`` on ``day``."""

    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    if not 0 <= start_hour < end_hour <= 24:
        raise ValueError("start_hour must be before end_hour within one day")

    step = timedelta(minutes=step_minutes)
    cursor = datetime.combine(day, time.min) + timedelta(hours=start_hour)
    day_end = datetime.combine(day, time.min) + timedelta(hours=end_hour)
    slots: list[Slot] = []
    while cursor + step <= day_end:
        slots.append(
            Slot(
                start=to_instant(cursor),
                end=to_instant(cursor + step),
                label=cursor.strftime("%H:%M"),
            )
        )
        cursor += step
    return slots


def configured_day_slots(day: date) -> list[Slot]:
    """Slot grid using the application's configured day hours and step."""

    config = current_app.config
    return generate_day_slots(
        day,
        start_hour=config["DAY_START_HOUR"],
        end_hour=config["DAY_END_HOUR"],
        step_minutes=config["SLOT_MINUTES"],
    )


def to_storage(instant: datetime) -> str:
    """Fixed-width UTC text so stored values sort and compare lexically."""

    return normalize_instant(instant).isoformat(timespec="seconds")


def from_storage(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return normalize_instant(value)
    return normalize_instant(datetime.fromisoformat(value.replace(" ", "T")))


def parse_instant(value: str) -> datetime:
    """Parse an external ISO-8601 timestamp; naive values are UTC."""

    return normalize_instant(parser.isoparse(value.strip()))
