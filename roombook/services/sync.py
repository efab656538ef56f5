"""Two-way reconciliation with the external booking spreadsheet.

Rows are keyed by an external row identifier stored on the local record.
Pull never overwrites: a row whose identifier already exists locally is
skipped. Push appends local records that have no identifier yet and stamps
them with the one the sheet assigns, so the next run leaves them alone.
Imported reservations are trusted as-is; only the storage overlap guard can
reject them.
"""

from __future__ import annotations

import re
import secrets
import sqlite3
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

import pandas as pd
from flask import current_app

from ..data_access import reservations_dao, rooms_dao, users_dao
from ..models.entities import ROLE_EMPLOYEE, ROLES, STATUS_CANCELLED, STATUS_CONFIRMED, Actor, Room
from .results import FORBIDDEN, SYNC_NOT_CONFIGURED, UNAUTHORIZED, ServiceResult
from .timezone import parse_instant, to_storage
from .view_cache import invalidate_reservation_views

RESERVATIONS_TAB = "reservations"
USERS_TAB = "users"
RESERVATION_COLUMNS = (
    "row_id",
    "room_name",
    "title",
    "user_email",
    "user_name",
    "start_time",
    "end_time",
    "participant_count",
    "status",
)
USER_COLUMNS = ("row_id", "name", "email", "role")
TAB_COLUMNS = {RESERVATIONS_TAB: RESERVATION_COLUMNS, USERS_TAB: USER_COLUMNS}


class SheetSource(Protocol):
    """Tabular store with one list of rows per tab; column 0 is the row id."""

    def read_rows(self, tab: str) -> list[list[str]]:
        ...

    def append_rows(self, tab: str, rows: Sequence[Sequence[str]]) -> list[str]:
        """Append rows (without ids) and return the ids assigned to them."""
        ...


class CsvWorkbook:
    """A directory of ``<tab>.csv`` files, each with a header row."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, tab: str) -> Path:
        return self.directory / f"{tab}.csv"

    def load(self, tab: str) -> pd.DataFrame:
        path = self._path(tab)
        if not path.exists():
            return pd.DataFrame(columns=list(TAB_COLUMNS.get(tab, ("row_id",))))
        return pd.read_csv(path, dtype=str, keep_default_na=False).fillna("")

    def read_rows(self, tab: str) -> list[list[str]]:
        rows = self.load(tab).values.tolist()
        return [row for row in rows if any(str(cell).strip() for cell in row)]

    def append_rows(self, tab: str, rows: Sequence[Sequence[str]]) -> list[str]:
        if not rows:
            return []
        frame = self.load(tab)
        numeric_ids = pd.to_numeric(frame.iloc[:, 0], errors="coerce").dropna()
        next_id = int(numeric_ids.max()) + 1 if len(numeric_ids) else 1
        assigned = [str(next_id + offset) for offset in range(len(rows))]
        added = pd.DataFrame(
            [[row_id, *row] for row_id, row in zip(assigned, rows)],
            columns=frame.columns,
        )
        combined = added if frame.empty else pd.concat([frame, added], ignore_index=True)
        self.directory.mkdir(parents=True, exist_ok=True)
        combined.to_csv(self._path(tab), index=False)
        return assigned


@dataclass
class SyncReport:
    synced: int = 0
    skipped: int = 0
    errors: int = 0
    total_rows: int = 0
    pushed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _cell(row: Sequence[str], index: int) -> str:
    return row[index].strip() if index < len(row) and row[index] else ""


def external_row_id(row_id: str, room_name: str = "", start_time: str = "") -> str:
    if row_id:
        return f"sheet_{row_id}"
    return re.sub(r"[^a-zA-Z0-9_-]", "_", f"sheet_{room_name}_{start_time}")


def match_room(rooms: Sequence[Room], name: str) -> Optional[Room]:
    """Exact case-insensitive name first, then containment either way."""

    normalized = name.strip().lower()
    if not normalized:
        return None
    for room in rooms:
        if room.name.lower() == normalized:
            return room
    for room in rooms:
        candidate = room.name.lower()
        if candidate in normalized or normalized in candidate:
            return room
    return None


def pull_users(source: SheetSource, report: SyncReport) -> None:
    for row in source.read_rows(USERS_TAB):
        report.total_rows += 1
        row_id, name, email, role = (_cell(row, index) for index in range(4))
        email = email.lower()
        if not email:
            report.skipped += 1
            continue
        marker = external_row_id(row_id or email)
        if users_dao.get_user_by_external_id(marker):
            report.skipped += 1
            continue
        existing = users_dao.get_user_by_email(email)
        if existing is not None:
            # Link the local account to its sheet row so push leaves it out.
            if not existing.external_row_id:
                users_dao.update_user(existing.user_id, external_row_id=marker)
            report.skipped += 1
            continue
        role = role.upper() if role.upper() in ROLES else ROLE_EMPLOYEE
        # Imported accounts get a random password; an admin resets it before first sign-in.
        password_hash = users_dao.hash_password(secrets.token_urlsafe(24))
        try:
            users_dao.create_user(name or email, email, password_hash, role=role, external_row_id=marker)
        except sqlite3.IntegrityError:
            current_app.logger.error(f"Sheet user row {row_id or email} rejected by storage", exc_info=True)
            report.errors += 1
            continue
        report.synced += 1


def pull_reservations(source: SheetSource, report: SyncReport) -> None:
    rooms = rooms_dao.list_rooms(include_inactive=True)
    for row in source.read_rows(RESERVATIONS_TAB):
        report.total_rows += 1
        row_id = _cell(row, 0)
        room_name = _cell(row, 1)
        title = _cell(row, 2)
        email = _cell(row, 3).lower()
        start_raw = _cell(row, 5)
        end_raw = _cell(row, 6)
        participants_raw = _cell(row, 7)
        status_raw = _cell(row, 8).lower()

        if not room_name or not start_raw or not end_raw or not email:
            report.skipped += 1
            continue
        room = match_room(rooms, room_name)
        user = users_dao.get_user_by_email(email)
        if room is None or user is None:
            current_app.logger.warning(
                f"Sheet row {row_id or room_name} skipped: no '{room_name}' room or no user {email}"
            )
            report.skipped += 1
            continue
        marker = external_row_id(row_id, room_name, start_raw)
        if reservations_dao.get_reservation_by_external_id(marker):
            report.skipped += 1
            continue
        try:
            start = parse_instant(start_raw)
            end = parse_instant(end_raw)
        except (ValueError, OverflowError):
            current_app.logger.warning(f"Sheet row {marker} has unparseable times")
            report.errors += 1
            continue

        status = STATUS_CANCELLED if status_raw in {"cancelled", "canceled"} else STATUS_CONFIRMED
        try:
            participants = max(int(participants_raw), 1)
        except ValueError:
            participants = 1
        try:
            reservations_dao.insert_reservation(
                room.room_id,
                user.user_id,
                title or f"Meeting - {room.name}",
                start,
                end,
                participant_count=min(participants, room.capacity),
                status=status,
                external_row_id=marker,
            )
        except sqlite3.IntegrityError:
            current_app.logger.error(f"Sheet row {marker} rejected by storage", exc_info=True)
            report.errors += 1
            continue
        report.synced += 1


def push_users(source: SheetSource) -> int:
    pending = users_dao.list_users_without_external_id()
    assigned = source.append_rows(USERS_TAB, [[user.name, user.email, user.role] for user in pending])
    for user, row_id in zip(pending, assigned):
        users_dao.update_user(user.user_id, external_row_id=external_row_id(row_id))
    return len(assigned)


def push_reservations(source: SheetSource) -> int:
    pending = reservations_dao.list_without_external_id()
    rows = []
    for reservation in pending:
        room = rooms_dao.get_room_by_id(reservation.room_id)
        user = users_dao.get_user_by_id(reservation.user_id)
        rows.append(
            [
                room.name if room else "",
                reservation.title,
                user.email if user else "",
                user.name if user else "",
                to_storage(reservation.start_time),
                to_storage(reservation.end_time),
                str(reservation.participant_count),
                reservation.status.lower(),
            ]
        )
    assigned = source.append_rows(RESERVATIONS_TAB, rows)
    for reservation, row_id in zip(pending, assigned):
        reservations_dao.update_reservation(
            reservation.reservation_id, external_row_id=external_row_id(row_id)
        )
    return len(assigned)


def reconcile(source: SheetSource) -> SyncReport:
    """Pull then push, so freshly imported rows are never echoed back."""

    report = SyncReport()
    pull_users(source, report)
    pull_reservations(source, report)
    report.pushed = push_users(source) + push_reservations(source)
    if report.synced or report.pushed:
        invalidate_reservation_views()
    current_app.logger.info(
        f"Sheet sync: {report.synced} synced, {report.skipped} skipped, "
        f"{report.errors} errors, {report.pushed} pushed of {report.total_rows} rows"
    )
    return report


def workbook_from_config(directory: Optional[str] = None) -> Optional[CsvWorkbook]:
    directory = directory or current_app.config.get("SHEET_DIRECTORY")
    return CsvWorkbook(directory) if directory else None


def synchronize(actor: Optional[Actor], source: Optional[SheetSource] = None) -> ServiceResult:
    """Admin-triggered sync; the report is returned as the result data."""

    if actor is None:
        return ServiceResult.fail(UNAUTHORIZED)
    if not actor.is_admin:
        return ServiceResult.fail(FORBIDDEN, "Only admins can sync with the external sheet.")
    source = source or workbook_from_config()
    if source is None:
        return ServiceResult.fail(SYNC_NOT_CONFIGURED)
    return ServiceResult.ok(reconcile(source))


def run_system_sync(directory: Optional[str] = None) -> Optional[SyncReport]:
    """Unattended sync for the CLI; ``None`` when no workbook is configured."""

    source = workbook_from_config(directory)
    if source is None:
        return None
    return reconcile(source)
