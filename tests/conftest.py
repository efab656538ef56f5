"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from pathlib import Path
import sys
from typing import Generator

import pytest
from flask import Flask

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from roombook.app import create_app
from roombook.config import TestingConfig
from roombook.data_access import rooms_dao, seed, users_dao
from roombook.data_access.db import get_db, init_db
from roombook.models.entities import Actor
from roombook.services.timezone import local_today, to_instant


class _TestConfig(TestingConfig):
    DATABASE_URL: str = ""


@pytest.fixture()
def app(tmp_path: Path) -> Generator[Flask, None, None]:
    """Configure a Flask application for testing with a temp SQLite database."""

    db_path = tmp_path / "test.db"
    _TestConfig.DATABASE_URL = f"sqlite:///{db_path}"
    _TestConfig.SHEET_DIRECTORY = None
    application = create_app(_TestConfig)
    with application.app_context():
        init_db(application)
        seed.seed()
    yield application


@pytest.fixture()
def peer_app(app: Flask) -> Flask:
    """A second worker process's app over the same database file."""

    return create_app(_TestConfig)


@pytest.fixture()
def client(app: Flask):
    """Flask test client."""

    return app.test_client()


@pytest.fixture()
def runner(app: Flask):
    """Flask CLI runner."""

    return app.test_cli_runner()


@pytest.fixture()
def db(app: Flask):
    """Provide a database connection for direct queries."""

    with app.app_context():
        yield get_db()


@pytest.fixture()
def super_admin_user(app: Flask):
    with app.app_context():
        return users_dao.get_user_by_email("superadmin@roombook.id")


@pytest.fixture()
def admin_user(app: Flask):
    with app.app_context():
        return users_dao.get_user_by_email("admin@roombook.id")


@pytest.fixture()
def employee_user(app: Flask):
    with app.app_context():
        return users_dao.get_user_by_email("sari@roombook.id")


@pytest.fixture()
def other_employee(app: Flask):
    with app.app_context():
        return users_dao.get_user_by_email("budi@roombook.id")


@pytest.fixture()
def employee(employee_user) -> Actor:
    return Actor(user_id=employee_user.user_id, role=employee_user.role)


@pytest.fixture()
def other(other_employee) -> Actor:
    return Actor(user_id=other_employee.user_id, role=other_employee.role)


@pytest.fixture()
def admin(admin_user) -> Actor:
    return Actor(user_id=admin_user.user_id, role=admin_user.role)


@pytest.fixture()
def super_admin(super_admin_user) -> Actor:
    return Actor(user_id=super_admin_user.user_id, role=super_admin_user.role)


@pytest.fixture()
def public_room(app: Flask):
    with app.app_context():
        return rooms_dao.get_room_by_name("Jakarta Room")


@pytest.fixture()
def small_room(app: Flask):
    with app.app_context():
        return rooms_dao.get_room_by_name("Bandung Room")


@pytest.fixture()
def special_room(app: Flask):
    with app.app_context():
        return rooms_dao.get_room_by_name("Board Room")


@pytest.fixture()
def inactive_room(app: Flask):
    with app.app_context():
        return rooms_dao.get_room_by_name("Archive Room")


@pytest.fixture()
def at(app: Flask):
    """Build a UTC instant from local wall time a few days out, clear of seed data."""

    def _at(hour: int, minute: int = 0, days: int = 5) -> datetime:
        with app.app_context():
            day = local_today() + timedelta(days=days)
            return to_instant(datetime.combine(day, time(hour, minute)))

    return _at


def login(client, email: str, password: str = seed.SEED_PASSWORD):
    return client.post(
        "/auth/login",
        data={"email": email, "password": password},
        follow_redirects=True,
    )
