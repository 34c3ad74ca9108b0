"""
Routes for the authentication blueprint.

Handles login / logout (HTML form or JSON body) and registers the
Flask-Login user_loader.
"""

from __future__ import annotations

import logging

from flask import flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from dmarcdesk import csrf, db, login_manager, wants_json
from dmarcdesk.auth import bp
from dmarcdesk.auth.forms import LoginForm
from dmarcdesk.exceptions import AuthenticationError
from dmarcdesk.models import User

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Flask-Login hooks
# ---------------------------------------------------------------------------


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    """Load a User by primary key; returns None if not found or disabled."""
    try:
        uid = int(user_id)
    except (ValueError, TypeError):
        return None
    user = db.session.get(User, uid)
    if user is None or not user.enabled:
        return None
    return user


def _authenticate(username: str, password: str) -> User | None:
    user: User | None = (
        db.session.execute(db.select(User).where(User.name == username))
        .scalars()
        .first()
    )
    if user is not None and user.enabled and user.check_password(password):
        return user
    return None


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@bp.route("/login", methods=["GET", "POST"])
@csrf.exempt
def login():
    """Authenticate submitted credentials.

    A JSON body ``{"username": ..., "password": ...}`` gets a JSON answer;
    otherwise the HTML login form is rendered and validated (with CSRF).
    """
    if request.method == "POST" and request.is_json:
        data = request.get_json(silent=True) or {}
        username = str(data.get("username") or "")
        user = _authenticate(username, str(data.get("password") or ""))
        if user is None:
            logger.warning("Login failed: username=%r ip=%s", username, request.remote_addr)
            raise AuthenticationError("Authentication error")
        login_user(user, remember=False)
        logger.info("Login successful: username=%r ip=%s", username, request.remote_addr)
        return jsonify({"error_code": 0, "message": "Successfully", "user": {
            "name": user.name,
            "level": user.user_level.to_string(),
        }})

    if current_user.is_authenticated:
        return redirect(url_for("reports.index"))

    form = LoginForm()
    if not form.validate_on_submit():
        return render_template("login.html", form=form)

    # Log the username only - never log the password.
    submitted_username = form.username.data or ""
    user = _authenticate(submitted_username, form.password.data or "")
    if user is not None:
        login_user(user, remember=False)
        logger.info("Login successful: username=%r ip=%s", submitted_username, request.remote_addr)
        next_page: str | None = request.args.get("next")
        # Basic open-redirect guard: only follow relative paths.
        if next_page and not next_page.startswith("/"):
            next_page = None
        return redirect(next_page or url_for("reports.index"))

    logger.warning(
        "Login failed: username=%r ip=%s (bad credentials or disabled account)",
        submitted_username,
        request.remote_addr,
    )
    flash("Invalid credentials. Please try again.", "danger")
    return render_template("login.html", form=form)


# ---------------------------------------------------------------------------
# Logout
# ---------------------------------------------------------------------------


@bp.route("/logout", methods=["GET", "POST"])
@login_required
def logout():
    """Log the current user out."""
    logger.info("Logout: username=%r ip=%s", current_user.name, request.remote_addr)
    logout_user()
    if wants_json():
        return jsonify({"error_code": 0, "message": "Successfully"})
    flash("You have been logged out.", "info")
    return redirect(url_for("auth.login"))
