"""
Users blueprint routes.

  GET  /users   - JSON user list / single user, or the HTML page shell
  POST /users   - JSON actions: add, update, delete, set_password

JSON is returned when the client sends ``Accept: application/json`` (or
``?format=json``); otherwise the static page shell is served and the page
loads its data through the same URL.
"""

from __future__ import annotations

import logging

from flask import jsonify, render_template, request
from flask_login import current_user, login_required

from dmarcdesk import wants_json
from dmarcdesk.exceptions import ForbiddenError, SoftError
from dmarcdesk.models import UserLevel
from dmarcdesk.users import bp
from dmarcdesk.users.directory import UserDirectory
from dmarcdesk.utils.auth import ensure_allowed

logger = logging.getLogger(__name__)

_ACTIONS = ("add", "update", "delete", "set_password")


def _actor():
    return current_user._get_current_object()


@bp.route("/users", methods=["GET"])
def users():
    """Serve the users page shell or the requested user data as JSON."""
    if not wants_json():
        return _users_page()

    actor = _actor()
    ensure_allowed(actor, UserLevel.USER)
    directory = UserDirectory(actor)

    name: str = request.args.get("user", "").strip()
    if name and name == actor.name and actor.level < UserLevel.ADMIN:
        # Self view for non-admins: no admin-only fields.
        user = directory.get(name)
        return jsonify({
            "name": user.name,
            "level": user.user_level.to_string(),
            "password": bool(user.password_hash),
        })

    ensure_allowed(actor, UserLevel.ADMIN)

    if name:
        return jsonify(directory.get(name).to_dict())

    return jsonify({
        "users": [u.to_dict() for u in directory.list()],
        "more": False,
    })


@login_required
def _users_page():
    return render_template("users.html")


def _bad_request():
    return jsonify({"error_code": -1, "message": "Bad request"}), 400


@bp.route("/users", methods=["PUT", "PATCH", "DELETE"])
def users_other():
    """Only GET and POST are served."""
    return _bad_request()


@bp.route("/users", methods=["POST"])
def users_action():
    """Dispatch a user management action from the JSON body."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return _bad_request()

    actor = _actor()
    ensure_allowed(actor, UserLevel.USER)
    directory = UserDirectory(actor)

    name = data.get("name")
    action = data.get("action", "")

    if action == "set_password":
        directory.set_password(
            name,
            data.get("new_password"),
            current_password=data.get("password"),
        )
        return jsonify({
            "error_code": 0,
            "message": "The password has been successfully updated",
        })

    if actor.level < UserLevel.ADMIN:
        raise ForbiddenError("Forbidden")

    result: dict = {"error_code": 0, "message": "Successfully"}
    if action == "add":
        user = directory.add(name, data.get("level"), data.get("enabled"), data.get("email"))
        result["user"] = user.to_dict()
    elif action == "update":
        user = directory.update(name, data.get("level"), data.get("enabled"), data.get("email"))
        result["user"] = user.to_dict()
    elif action == "delete":
        directory.delete(name)
    else:
        raise SoftError(
            "Unknown action. Valid values are "
            + ", ".join(f'"{a}"' for a in _ACTIONS)
            + "."
        )
    return jsonify(result)
