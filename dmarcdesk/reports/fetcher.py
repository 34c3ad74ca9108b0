"""
Report fetcher: the consumer side of the report sources.

Takes every item of a :class:`~dmarcdesk.sources.Source`, parses it,
stores the report, tells the source whether the item was accepted or
rejected and writes one :class:`~dmarcdesk.models.ReportLog` row per item.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from dmarcdesk import db
from dmarcdesk.exceptions import SoftError
from dmarcdesk.models import Domain, Report, ReportLog
from dmarcdesk.reports.parser import parse_dmarc_attachment
from dmarcdesk.sources import Source, SourceType

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of one source item."""

    filename: str
    success: bool
    message: str
    report_id: str | None = None
    domain: str | None = None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "success": self.success,
            "message": self.message,
            "report_id": self.report_id,
            "domain": self.domain,
        }


# ---------------------------------------------------------------------------
# Shared helper: persist a parsed DMARC report
# ---------------------------------------------------------------------------


def _get_or_create_domain(fqdn: str) -> Domain:
    domain = db.session.execute(
        db.select(Domain).where(Domain.fqdn == fqdn)
    ).scalars().first()
    if domain is None:
        domain = Domain(fqdn=fqdn, active=True)
        db.session.add(domain)
        db.session.flush()
        logger.info("Domain added from incoming report: fqdn=%r", fqdn)
    return domain


def store_report(parsed: dict, source_type: SourceType) -> Report:
    """Save a parsed DMARC report to the database.

    Computes aggregate pass/fail counts from the individual records and
    resolves the policy domain, creating it when it is not known yet.
    The unique constraint on (report_id, org_name) is used to detect
    duplicates without a prior SELECT.

    Raises:
        SoftError: The report is already stored.
    """
    records: list[dict] = parsed.get("records", [])

    total_messages: int = sum(r.get("count", 0) for r in records)
    pass_count: int = sum(
        r.get("count", 0)
        for r in records
        if r.get("dkim") == "pass" or r.get("spf") == "pass"
    )

    domain = _get_or_create_domain(parsed["policy_domain"])
    report = Report(
        report_id=parsed["report_id"],
        org_name=parsed["org_name"],
        email=parsed.get("email") or None,
        domain=domain,
        begin_date=parsed["begin_date"],
        end_date=parsed["end_date"],
        total_messages=total_messages,
        pass_count=pass_count,
        fail_count=total_messages - pass_count,
        records_json=json.dumps(records),
        policy_published_json=json.dumps(parsed.get("policy_published") or {}),
        source=source_type.to_string(),
    )
    db.session.add(report)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info(
            "store_report: duplicate skipped report_id=%r org=%r",
            parsed.get("report_id"),
            parsed.get("org_name"),
        )
        raise SoftError("The report already exists") from None

    logger.info(
        "store_report: ingested report_id=%r org=%r domain=%r source=%s",
        report.report_id,
        report.org_name,
        domain.fqdn,
        source_type.to_string(),
    )
    return report


class ReportFetcher:
    """Pulls every item out of a source and stores the reports."""

    def __init__(self, source: Source) -> None:
        self.source = source

    def fetch(self) -> list[FetchResult]:
        results: list[FetchResult] = []
        self.source.rewind()
        while self.source.valid():
            result = self._fetch_current()
            if result.success:
                self.source.accepted()
            else:
                self.source.rejected()
                logger.warning(
                    "ReportFetcher: rejected %r from %s: %s",
                    result.filename,
                    self.source.type().to_string(),
                    result.message,
                )
            self._log(result)
            results.append(result)
            self.source.next()

        logger.info(
            "ReportFetcher: %s done, %d accepted, %d rejected",
            self.source.type().to_string(),
            sum(1 for r in results if r.success),
            sum(1 for r in results if not r.success),
        )
        return results

    def _fetch_current(self) -> FetchResult:
        """Read, parse and store the item under the cursor.

        A failure of one item becomes a rejected result; the remaining
        items are still processed.
        """
        filename = f"item #{self.source.key()}"
        try:
            item = self.source.current()
            filename = item.filename
            return self._process(item.filename, item.data, item.message)
        except Exception:
            db.session.rollback()
            logger.exception(
                "ReportFetcher: failed to process %r from %s",
                filename,
                self.source.type().to_string(),
            )
            return FetchResult(filename, False, "Failed to process the report")

    def _process(self, filename: str, data: bytes | None, message: str | None) -> FetchResult:
        if data is None:
            return FetchResult(filename, False, message or "No report data")

        parsed = parse_dmarc_attachment(filename, data)
        if parsed is None:
            return FetchResult(filename, False, "Incorrect or unsupported report format")

        try:
            store_report(parsed, self.source.type())
        except SoftError as exc:
            return FetchResult(filename, False, exc.message, parsed["report_id"], parsed["policy_domain"])
        return FetchResult(filename, True, "Successfully", parsed["report_id"], parsed["policy_domain"])

    def _log(self, result: FetchResult) -> None:
        db.session.add(ReportLog(
            source=self.source.type().to_string(),
            filename=result.filename[:255],
            report_id=result.report_id,
            domain=result.domain,
            success=result.success,
            message=result.message,
        ))
        db.session.commit()
