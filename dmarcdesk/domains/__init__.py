"""Domains blueprint - the directory of reported domains."""

from __future__ import annotations

from flask import Blueprint

bp: Blueprint = Blueprint("domains", __name__, url_prefix="/domains")

from dmarcdesk.domains import routes  # noqa: E402, F401
