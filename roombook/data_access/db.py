"""SQLite connection management utilities."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

import click
from flask import Flask, current_app, g


class RoomBookConnection(sqlite3.Connection):
    """Autocommit connection that tracks explicit ``BEGIN IMMEDIATE`` blocks."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.transaction_depth = 0


def _create_connection(database_url: str) -> RoomBookConnection:
    """Instantiate a SQLite connection for the provided URL."""

    if database_url == "sqlite:///:memory:":
        db_path = ":memory:"
    elif database_url.startswith("sqlite:///"):
        db_path = database_url.replace("sqlite:///", "", 1)
    elif database_url.startswith("sqlite://"):
        db_path = database_url.replace("sqlite://", "", 1)
    else:
        raise ValueError("Only sqlite database URLs are supported in this implementation.")

    connection = sqlite3.connect(
        db_path,
        timeout=10,
        isolation_level=None,
        check_same_thread=False,
        factory=RoomBookConnection,
    )
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection  # type: ignore[return-value]


def get_db() -> RoomBookConnection:
    """Return a cached connection for the request context."""

    if "db_conn" not in g:
        database_url = current_app.config["DATABASE_URL"]
        g.db_conn = _create_connection(database_url)
    return g.db_conn  # type: ignore[return-value]


def close_db(exception: Exception | None = None) -> None:
    """Close the stored connection at the end of the request."""

    connection = g.pop("db_conn", None)
    if connection is not None:
        connection.close()


@contextmanager
def transaction(db: RoomBookConnection) -> Iterator[RoomBookConnection]:
    """Run the enclosed reads and writes as one serialised write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock up front, so two
    check-then-write sequences can never interleave. Nested use joins the
    outer transaction.
    """

    if db.transaction_depth:
        db.transaction_depth += 1
        try:
            yield db
        finally:
            db.transaction_depth -= 1
        return

    db.execute("BEGIN IMMEDIATE")
    db.transaction_depth = 1
    try:
        yield db
    except BaseException:
        db.rollback()
        raise
    else:
        db.commit()
    finally:
        db.transaction_depth = 0


def execute(db: RoomBookConnection, query: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
    """Execute a write query, committing unless an explicit transaction is open."""

    cursor = db.execute(query, params or [])
    if not db.transaction_depth:
        db.commit()
    return cursor


def query_all(db: sqlite3.Connection, query: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
    """Execute a read query returning multiple rows."""

    cursor = db.execute(query, params or [])
    return cursor.fetchall()


def query_one(db: sqlite3.Connection, query: str, params: Sequence[Any] | None = None) -> sqlite3.Row | None:
    """Execute a read query returning a single row."""

    cursor = db.execute(query, params or [])
    return cursor.fetchone()


def init_db(app: Flask | None = None) -> None:
    """Initialize the database schema by executing the SQL script."""

    app = app or current_app
    with app.app_context():
        db = get_db()
        schema_path = Path(app.root_path).parent / "roombook_schema.sql"
        with schema_path.open("r", encoding="utf-8") as sql_file:
            db.executescript(sql_file.read())


def init_app(app: Flask) -> None:
    """Wire database helpers into the Flask app."""

    app.teardown_appcontext(close_db)

    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Clear existing data and create new tables."""

        init_db(app)
        click.echo("Initialized the database.")

    @app.cli.command("seed-db")
    def seed_db_command() -> None:
        """Load demo rooms, users and reservations."""

        from . import seed  # pylint: disable=import-outside-toplevel

        seed.seed()
        click.echo("Seeded demo data.")

    @app.cli.command("sweep-check-ins")
    def sweep_check_ins_command() -> None:
        """Mark reservations whose check-in window has closed as missed."""

        from ..services import booking  # pylint: disable=import-outside-toplevel

        marked = booking.sweep_missed_check_ins()
        click.echo(f"Marked {marked} reservation(s) as missed.")

    @app.cli.command("sync-sheet")
    @click.option("--directory", "directory", default=None, help="CSV workbook directory.")
    def sync_sheet_command(directory: str | None) -> None:
        """Two-way sync with the external spreadsheet workbook."""

        from ..services import sync  # pylint: disable=import-outside-toplevel

        report = sync.run_system_sync(directory)
        if report is None:
            raise click.ClickException("SHEET_DIRECTORY is not configured.")
        click.echo(
            f"Synced {report.synced}, skipped {report.skipped}, errors {report.errors}, "
            f"pushed {report.pushed} of {report.total_rows} row(s)."
        )
