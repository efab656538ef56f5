"""Application factory for RoomBook."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from flask import Flask, redirect, render_template, url_for
from flask_login import LoginManager, current_user, login_required
from flask_mail import Mail
from flask_wtf import CSRFProtect
from flask_wtf.csrf import generate_csrf

from .config import BaseConfig, get_config
from .data_access import users_dao
from .data_access.db import init_app as init_db_app
from .models.entities import Actor, User
from .services import schedule
from .services.notifications import NotificationDispatcher
from .services.timezone import format_local, local_today
from .services.view_cache import ViewCache

csrf = CSRFProtect()
mail = Mail()
login_manager = LoginManager()
login_manager.login_view = "auth.login"
login_manager.login_message_category = "info"


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    """Look up a user for Flask-Login session handling."""
    if not user_id:
        return None
    user = users_dao.get_user_by_id(int(user_id))
    if user is None or not user.is_active:
        return None
    return user


def create_app(config_object: type[BaseConfig] | None = None) -> Flask:
    """Create and configure the Flask application instance."""

    app = Flask(
        __name__,
        template_folder=str(Path(__file__).parent / "views"),
    )

    config_cls = config_object or get_config()
    app.config.from_object(config_cls)

    csrf.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    ViewCache(app)
    NotificationDispatcher(app)
    init_db_app(app)

    register_blueprints(app)
    register_error_handlers(app)

    @app.route("/")
    @login_required
    def index() -> str:
        """Render the dashboard with headline stats and today's room states."""

        actor = Actor.from_user(current_user)
        return render_template(
            "dashboard.html",
            stats=schedule.dashboard_stats(actor),
            rooms=schedule.list_rooms_for(actor),
            today=local_today(),
        )

    @app.route("/dashboard")
    def dashboard():
        return redirect(url_for("index"))

    @app.context_processor
    def inject_globals() -> Dict[str, Any]:
        """Expose common template variables."""

        return {
            "current_user": current_user,
            "current_year": datetime.now(timezone.utc).year,
            "csrf_token": generate_csrf,
            "format_local": format_local,
            "timezone_name": app.config["TIMEZONE"],
        }

    return app


def register_blueprints(app: Flask) -> None:
    """Import and register application blueprints."""

    from .controllers import (  # pylint: disable=import-outside-toplevel
        admin,
        api,
        auth,
        bookings,
        rooms,
    )

    app.register_blueprint(auth.bp)
    app.register_blueprint(rooms.bp)
    app.register_blueprint(bookings.bp)
    app.register_blueprint(admin.bp)
    app.register_blueprint(api.bp)
    # The API rides on the session cookie, so its writes carry the token in an X-CSRFToken header.


ERROR_PAGES = {
    400: ("Bad Request", "The request could not be understood. Check the date or form values."),
    403: ("Access Denied", "You don't have permission to view this page. Contact an admin."),
    404: ("Page Not Found", "We could not locate the page you requested."),
    500: ("Server Error", "An unexpected error occurred. The team has been notified."),
}


def _error_page(code: int, title: str, message: str):
    def handler(error: Exception) -> tuple[str, int]:
        return render_template("error.html", title=title, message=message), code

    return handler


def register_error_handlers(app: Flask) -> None:
    """Render every handled HTTP error through the shared error page."""

    for code, (title, message) in ERROR_PAGES.items():
        app.register_error_handler(code, _error_page(code, title, message))
