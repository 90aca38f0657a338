"""
BenchBoost Flask application factory.

Provides the ``create_app`` factory that assembles the dashboard. The
application is a stateless backend-for-frontend: it serves server-rendered
HTML pages via Jinja templates and talks to the hosted backend (table API
and auth API) on behalf of the browser. It never opens a database of its
own; the only per-user state it keeps is the access token in the session
cookie.
"""

from __future__ import annotations

import logging
from datetime import datetime

import requests
from flask import Flask, flash, g, redirect, render_template, url_for

from config import get_config, load_backend_jwt_secret

from .backend import BackendClient, BackendError, SessionExpiredError
from .models import ROLE_LABELS, Role, TaskStatus
from .rules import SETTINGS_MENU_ITEM, is_overdue, menu_for_role, resolve_role

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def format_date(value: datetime | None) -> str:
    """Render a date as ``Jan 5, 2026``; blank for missing values."""
    if value is None:
        return ""
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def status_label(value: str | TaskStatus | None) -> str:
    if value is None:
        return ""
    return str(getattr(value, "value", value)).replace("_", " ")


def role_label(value: str | Role | None) -> str:
    return ROLE_LABELS[resolve_role(value)]


def _register_template_helpers(app: Flask) -> None:
    app.add_template_filter(format_date, "format_date")
    app.add_template_filter(status_label, "status_label")
    app.add_template_filter(role_label, "role_label")
    app.add_template_global(is_overdue, "is_overdue")

    @app.context_processor
    def inject_navigation():
        role = getattr(g, "role", None)
        if role is None:
            return {
                "menu_items": [],
                "current_role": None,
                "current_profile": None,
                "current_email": "",
            }
        return {
            "menu_items": menu_for_role(role) + [SETTINGS_MENU_ITEM],
            "current_role": role,
            "current_profile": getattr(g, "profile", None),
            "current_email": getattr(g, "email", ""),
        }


def _register_error_handlers(app: Flask) -> None:
    from .auth import clear_session

    @app.errorhandler(SessionExpiredError)
    def handle_session_expired(error):
        clear_session()
        flash("Session expired. Please sign in again.", "error")
        return redirect(url_for("auth.auth_page"))

    @app.errorhandler(requests.Timeout)
    def handle_backend_timeout(error):
        logger.warning("Backend timed out: %s", error)
        return render_template("error.html", message="The backend timed out. Please try again."), 503

    @app.errorhandler(requests.RequestException)
    def handle_backend_unavailable(error):
        logger.warning("Backend unavailable: %s", error)
        return render_template("error.html", message="The backend is unavailable. Please try again later."), 503

    @app.errorhandler(BackendError)
    def handle_backend_error(error):
        logger.warning("Backend error: %s", error)
        return render_template("error.html", message=error.message), 502


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the BenchBoost application.

    Args:
        config_name: Optional configuration environment name
            (``"development"``, ``"testing"``, ``"production"``). When
            *None*, the value is read from the ``FLASK_ENV`` environment
            variable, defaulting to ``"development"``.

    Returns:
        A configured :class:`~flask.Flask` application instance.

    Raises:
        RuntimeError: If the backend JWT secret is not configured.
    """
    app = Flask(__name__, instance_relative_config=True)
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    app.config["BACKEND_JWT_SECRET"] = load_backend_jwt_secret(
        testing=bool(app.config.get("TESTING"))
    )

    logging.getLogger("benchboost_app").setLevel(app.config.get("LOG_LEVEL", "INFO").upper())
    logger.info("Creating BenchBoost app with config: %s", config_class.__name__)

    app.extensions["backend"] = BackendClient.from_config(app.config)

    # Import inside the factory to avoid circular imports -- the blueprint
    # modules reference helpers from this package, which must exist first.
    from .routes.admin import admin_bp
    from .routes.auth import auth_bp
    from .routes.views import views_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(views_bp)
    app.register_blueprint(admin_bp)

    _register_template_helpers(app)
    _register_error_handlers(app)
    return app
