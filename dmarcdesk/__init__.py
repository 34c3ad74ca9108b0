"""
Flask application factory for DMARC Desk.

Creates and configures the Flask application, registers all blueprints,
and initialises extensions (SQLAlchemy, Flask-Login, Flask-WTF).
"""

from __future__ import annotations

import logging
import sys

from flask import Flask, Response, jsonify, redirect, request, url_for
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException

from dmarcdesk.config import Config

# ---------------------------------------------------------------------------
# Extension instances (created here, initialised in create_app)
# ---------------------------------------------------------------------------
db: SQLAlchemy = SQLAlchemy()
login_manager: LoginManager = LoginManager()
csrf: CSRFProtect = CSRFProtect()

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure root logger for the application.

    Logging is sent to stdout so that WSGI hosts and cron capture it
    without requiring file handlers.

    Format: timestamp  level  logger-name  message

    Args:
        debug: When True, sets the root level to DEBUG.  Otherwise INFO.
    """
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)-8s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
        )
    )

    root_logger = logging.getLogger()
    # Avoid adding duplicate handlers if create_app() is called multiple times
    # (e.g. in tests).
    if not root_logger.handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


def wants_json() -> bool:
    """Return True when the current request asks for a JSON response."""
    if request.args.get("format") == "json":
        return True
    accept = request.accept_mimetypes
    return accept.accept_json and not accept.accept_html


def create_app(config_object: object = Config) -> Flask:
    """Application factory.

    Args:
        config_object: Configuration class or object to load settings from.

    Returns:
        A fully configured Flask application instance.
    """
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_object(config_object)

    # Must run before extension init so extensions use the same handlers.
    _configure_logging(debug=bool(app.config.get("DEBUG")))

    # ------------------------------------------------------------------
    # Initialise extensions
    # ------------------------------------------------------------------
    db.init_app(app)
    csrf.init_app(app)

    login_manager.init_app(app)
    login_manager.login_view = "auth.login"  # type: ignore[assignment]
    login_manager.login_message = "Please log in to access this page."
    login_manager.login_message_category = "warning"

    # ------------------------------------------------------------------
    # Register blueprints
    # ------------------------------------------------------------------
    from dmarcdesk.auth import bp as auth_bp
    from dmarcdesk.domains import bp as domains_bp
    from dmarcdesk.reports import bp as reports_bp
    from dmarcdesk.users import bp as users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(domains_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(users_bp)

    # JSON endpoints are protected by the session cookie's SameSite policy.
    csrf.exempt(domains_bp)
    csrf.exempt(reports_bp)
    csrf.exempt(users_bp)

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    from dmarcdesk.exceptions import AppError, SoftError, exception_result

    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        """Render application errors as a JSON result."""
        if not isinstance(exc, SoftError):
            logger.exception("Unhandled application error: %s", exc)
        return jsonify(exception_result(exc, app.config.get("DEBUG", False))), exc.http_status

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        """Render any other failure as a JSON internal error."""
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled exception: %s", exc)
        return jsonify(exception_result(exc, app.config.get("DEBUG", False))), 500

    @app.route("/")
    def index():
        return redirect(url_for("reports.index"))

    # ------------------------------------------------------------------
    # Security headers
    # Applied to every response from this application.
    # ------------------------------------------------------------------

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        """Attach security-related HTTP response headers.

        Headers applied:
        - X-Content-Type-Options: Prevents MIME-type sniffing.
        - X-Frame-Options: Blocks clickjacking by forbidding iframe embedding.
        - Content-Security-Policy: Only same-origin resources are allowed.
        """
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self';"
        )
        return response

    return app
