"""Users blueprint - user listing and management."""

from __future__ import annotations

from flask import Blueprint

bp: Blueprint = Blueprint("users", __name__)

from dmarcdesk.users import routes  # noqa: E402, F401
