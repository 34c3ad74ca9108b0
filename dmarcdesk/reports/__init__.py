"""DMARC aggregate report blueprint: listing, detail and upload."""

from flask import Blueprint

bp = Blueprint("reports", __name__, url_prefix="/reports")

from dmarcdesk.reports import routes  # noqa: E402, F401
