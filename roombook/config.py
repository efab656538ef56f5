"""Application configuration helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Type


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"true", "1", "t", "yes"}


class BaseConfig:
    """Base configuration shared across environments."""

    PROJECT_ROOT = Path(__file__).resolve().parent.parent
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-secret-change-me")
    DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{PROJECT_ROOT / 'roombook.db'}"
    WTF_CSRF_ENABLED = True
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True
    PREFERRED_URL_SCHEME = "https"

    # One display zone for the whole deployment; storage is always UTC.
    TIMEZONE = os.getenv("ROOMBOOK_TIMEZONE", "Asia/Jakarta")
    DAY_START_HOUR = 7
    DAY_END_HOUR = 21
    SLOT_MINUTES = 30
    CHECK_IN_WINDOW_MINUTES = 15

    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USE_SSL = _env_flag("MAIL_USE_SSL", "false")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "RoomBook <noreply@roombook.id>")
    MAIL_SUPPRESS_SEND = _env_flag("MAIL_SUPPRESS_SEND", "false")
    NOTIFICATIONS_ASYNC = True

    SHEET_DIRECTORY = os.getenv("SHEET_DIRECTORY")


class DevelopmentConfig(BaseConfig):
    """Configuration tweaks for local development."""

    DEBUG = True
    TESTING = False
    MAIL_SUPPRESS_SEND = _env_flag("MAIL_SUPPRESS_SEND", "true")


class TestingConfig(BaseConfig):
    """In-memory database configuration for pytest."""

    DEBUG = False
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    NOTIFICATIONS_ASYNC = False


class ProductionConfig(BaseConfig):
    """Production hardened configuration."""

    DEBUG = False
    TESTING = False


def get_config() -> Type[BaseConfig]:
    """Return the configuration class based on FLASK_ENV."""

    env = os.getenv("FLASK_ENV", "development").lower()
    if env == "production":
        return ProductionConfig
    if env == "testing":
        return TestingConfig
    return DevelopmentConfig
