"""
DMARC aggregate report blueprint routes.

Provides three endpoints:
  GET  /reports/          - report list (JSON, or the HTML page shell)
  GET  /reports/<id>      - full report detail with records (JSON)
  POST /reports/upload    - manual file upload (ZIP/GZ/XML, max 1 MiB each)

The list accepts repeated ``filter=key:value`` parameters with the keys
``domain``, ``month`` (``YYYY-MM``) and ``organization``.
"""

from __future__ import annotations

import logging

from flask import current_app, jsonify, render_template, request
from flask_login import login_required

from dmarcdesk import db, wants_json
from dmarcdesk.exceptions import NotFoundError, SoftError
from dmarcdesk.models import Domain, Report, UserLevel
from dmarcdesk.reports import bp
from dmarcdesk.reports.fetcher import ReportFetcher
from dmarcdesk.sources.uploaded import UploadedFilesSource
from dmarcdesk.utils.auth import level_required
from dmarcdesk.utils.common import get_filter, month_to_range

logger = logging.getLogger(__name__)

_FILTER_KEYS: frozenset[str] = frozenset({"domain", "month", "organization"})


def _filtered_query(filters: dict[str, str] | None):
    query = db.select(Report).join(Report.domain)
    for key, value in (filters or {}).items():
        if key not in _FILTER_KEYS:
            raise SoftError(f"Unknown filter: {key}")
        if key == "domain":
            query = query.where(Domain.fqdn == value.strip().lower())
        elif key == "month":
            start, end = month_to_range(value)
            query = query.where(Report.begin_date < end, Report.end_date > start)
        elif key == "organization":
            query = query.where(Report.org_name == value)
    return query


@bp.route("/", methods=["GET"])
def index():
    """Serve the reports page shell or the filtered report list as JSON."""
    if not wants_json():
        return _reports_page()
    return _report_list()


@login_required
def _reports_page():
    return render_template("reports.html")


@level_required(UserLevel.USER)
def _report_list():
    page: int = max(request.args.get("page", 1, type=int), 1)
    per_page: int = current_app.config.get("REPORTS_PER_PAGE", 25)

    query = _filtered_query(get_filter()).order_by(Report.begin_date.desc(), Report.id.desc())
    rows = db.session.execute(
        query.limit(per_page + 1).offset((page - 1) * per_page)
    ).scalars().all()

    return jsonify({
        "reports": [r.to_dict() for r in rows[:per_page]],
        "page": page,
        "more": len(rows) > per_page,
    })


@bp.route("/<int:id>", methods=["GET"])
@level_required(UserLevel.USER)
def detail(id: int):
    """Return a single report with its records."""
    report = db.session.get(Report, id)
    if report is None:
        raise NotFoundError("The report does not exist")
    return jsonify(report.to_dict(with_records=True))


@bp.route("/upload", methods=["POST"])
@level_required(UserLevel.MANAGER)
def upload():
    """Accept one or more DMARC report file uploads and ingest them."""
    source = UploadedFilesSource(request.files.getlist("report_file"))
    if not source.data:
        raise SoftError("No file selected")

    results = ReportFetcher(source).fetch()
    imported = sum(1 for r in results if r.success)
    return jsonify({
        "error_code": 0,
        "message": f"{imported} of {len(results)} report(s) imported",
        "results": [r.to_dict() for r in results],
    })
