"""
Domains blueprint routes.

  GET  /domains/   - JSON list of domains (any logged-in user)
  POST /domains/   - JSON actions add / update / delete (admins)
"""

from __future__ import annotations

import logging
import re

from flask import jsonify, request
from flask_login import current_user

from dmarcdesk import db
from dmarcdesk.domains import bp
from dmarcdesk.exceptions import SoftError
from dmarcdesk.models import Domain, UserLevel
from dmarcdesk.utils.auth import level_required

logger = logging.getLogger(__name__)

_HOSTNAME_RE = re.compile(
    r"^[a-z0-9]([a-z0-9\-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]*[a-z0-9])?)*\.[a-z]{2,}$"
)


def _normalise_fqdn(value: object) -> str:
    fqdn = value.strip().lower().rstrip(".") if isinstance(value, str) else ""
    if not fqdn or len(fqdn) > 253 or not _HOSTNAME_RE.match(fqdn):
        raise SoftError("Incorrect domain name")
    return fqdn


def _find(fqdn: str) -> Domain | None:
    return db.session.execute(
        db.select(Domain).where(Domain.fqdn == fqdn)
    ).scalars().first()


@bp.route("/", methods=["GET"])
@level_required(UserLevel.USER)
def index():
    """Return every domain ordered by name."""
    domains = db.session.execute(db.select(Domain).order_by(Domain.fqdn)).scalars().all()
    return jsonify({"domains": [d.to_dict() for d in domains], "more": False})


@bp.route("/", methods=["POST"])
@level_required(UserLevel.ADMIN)
def action():
    """Add, update or delete a domain."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error_code": -1, "message": "Bad request"}), 400

    fqdn = _normalise_fqdn(data.get("fqdn"))
    action_name = data.get("action", "")
    domain = _find(fqdn)
    result: dict = {"error_code": 0, "message": "Successfully"}

    if action_name == "add":
        if domain is not None:
            raise SoftError("The domain already exists")
        domain = Domain(
            fqdn=fqdn,
            active=bool(data.get("active", True)),
            description=data.get("description") or None,
        )
        db.session.add(domain)
        db.session.commit()
        result["domain"] = domain.to_dict()
    elif action_name == "update":
        if domain is None:
            raise SoftError("The domain does not exist")
        if "active" in data:
            domain.active = bool(data["active"])
        if "description" in data:
            domain.description = data["description"] or None
        db.session.commit()
        result["domain"] = domain.to_dict()
    elif action_name == "delete":
        if domain is None:
            raise SoftError("The domain does not exist")
        if domain.reports.count() and not data.get("force"):
            raise SoftError("The domain has reports; pass force to delete them too")
        db.session.delete(domain)
        db.session.commit()
    else:
        raise SoftError('Unknown action. Valid values are "add", "update", "delete".')

    logger.info("Domain %s: fqdn=%r by=%r", action_name, fqdn, current_user.name)
    return jsonify(result)
