"""
Summary report: aggregated DMARC statistics of one domain over a period.

The report is bound to a period at construction time and to a domain via
:meth:`SummaryReport.set_domain`.  :meth:`SummaryReport.text` and
:meth:`SummaryReport.html` yield the rendered lines lazily.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from markupsafe import escape

from dmarcdesk import db
from dmarcdesk.exceptions import SoftError
from dmarcdesk.models import Domain, Report

logger = logging.getLogger(__name__)


@dataclass
class OrgStats:
    reports: int = 0
    messages: int = 0
    aligned: int = 0


@dataclass
class DomainStats:
    """Aggregated numbers of one domain over the report period."""

    reports: int = 0
    messages: int = 0
    aligned: int = 0
    partial: int = 0
    not_aligned: int = 0
    quarantined: int = 0
    rejected: int = 0
    organizations: dict[str, OrgStats] = field(default_factory=dict)

    def add_report(self, report: Report) -> None:
        self.reports += 1
        org = self.organizations.setdefault(report.org_name, OrgStats())
        org.reports += 1
        for rec in report.get_records():
            count = int(rec.get("count") or 0)
            dkim_pass = rec.get("dkim") == "pass"
            spf_pass = rec.get("spf") == "pass"
            self.messages += count
            org.messages += count
            if dkim_pass and spf_pass:
                self.aligned += count
                org.aligned += count
            elif dkim_pass or spf_pass:
                self.partial += count
            else:
                self.not_aligned += count
            disposition = rec.get("disposition")
            if disposition == "quarantine":
                self.quarantined += count
            elif disposition == "reject":
                self.rejected += count


def _percent(part: int, total: int) -> str:
    if total <= 0:
        return "0%"
    return f"{round(part * 100 / total)}%"


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class SummaryReport:
    """DMARC summary of one domain for ``lastweek``, ``lastmonth`` or ``lastndays:N``."""

    def __init__(self, period: str, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        today = _start_of_day(now.astimezone(timezone.utc))

        if period == "lastweek":
            end = today - timedelta(days=today.weekday())
            start = end - timedelta(days=7)
            subject = "Weekly DMARC summary report"
        elif period == "lastmonth":
            end = today.replace(day=1)
            start = (end - timedelta(days=1)).replace(day=1)
            subject = "Monthly DMARC summary report"
        elif period.startswith("lastndays:"):
            ndays = period.partition(":")[2]
            if not ndays.isdigit() or int(ndays) < 1:
                raise SoftError("The number of days is incorrect")
            end = today
            try:
                start = end - timedelta(days=int(ndays))
            except OverflowError:
                raise SoftError("The number of days is incorrect") from None
            subject = f"DMARC summary report for the last {int(ndays)} days"
        else:
            raise SoftError("The period parameter is incorrect")

        self.period = period
        self.start: datetime = start
        self.end: datetime = end
        self._subject = subject
        self._domain: Domain | None = None
        self._stats: DomainStats | None = None

    def subject(self) -> str:
        return self._subject

    def set_domain(self, domain: Domain) -> None:
        self._domain = domain
        self._stats = None

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def stats(self) -> DomainStats:
        """Aggregate the reports of the current domain that overlap the period."""
        if self._domain is None:
            raise SoftError("The domain is not specified")
        if self._stats is None:
            stats = DomainStats()
            reports = db.session.execute(
                db.select(Report)
                .where(
                    Report.domain_id == self._domain.id,
                    Report.begin_date < self.end,
                    Report.end_date > self.start,
                )
                .order_by(Report.begin_date)
            ).scalars()
            for report in reports:
                stats.add_report(report)
            logger.debug(
                "SummaryReport: domain=%r reports=%d messages=%d",
                self._domain.fqdn, stats.reports, stats.messages,
            )
            self._stats = stats
        return self._stats

    def _range_text(self) -> str:
        last_day = self.end - timedelta(seconds=1)
        return f"{self.start:%Y-%m-%d} - {last_day:%Y-%m-%d}"

    def _org_rows(self) -> list[tuple[str, OrgStats]]:
        return sorted(
            self.stats().organizations.items(),
            key=lambda item: (-item[1].messages, item[0]),
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def text(self) -> Iterator[str]:
        """Yield the plain-text rendering line by line."""
        stats = self.stats()
        total = stats.messages
        yield f"# Domain: {self._domain.fqdn}"
        yield f" Range: {self._range_text()}"
        yield ""
        yield "## Summary"
        yield f" Reports:          {stats.reports}"
        yield f" Organizations:    {len(stats.organizations)}"
        yield f" Total messages:   {total}"
        yield f" Fully aligned:    {stats.aligned} ({_percent(stats.aligned, total)})"
        yield f" Partial aligned:  {stats.partial} ({_percent(stats.partial, total)})"
        yield f" Not aligned:      {stats.not_aligned} ({_percent(stats.not_aligned, total)})"
        yield f" Quarantined:      {stats.quarantined} ({_percent(stats.quarantined, total)})"
        yield f" Rejected:         {stats.rejected} ({_percent(stats.rejected, total)})"
        yield ""
        if stats.organizations:
            yield "## Organizations"
            width = max(len(name) for name in stats.organizations)
            yield f" {'Name'.ljust(width)}  Reports  Messages  Aligned"
            for name, org in self._org_rows():
                yield (
                    f" {name.ljust(width)}  {org.reports:>7}  {org.messages:>8}"
                    f"  {_percent(org.aligned, org.messages):>7}"
                )
            yield ""

    def html(self) -> Iterator[str]:
        """Yield the HTML fragment rendering line by line."""
        stats = self.stats()
        total = stats.messages
        yield f"<h2>Domain: {escape(self._domain.fqdn)}</h2>"
        yield f"<p>Range: {escape(self._range_text())}</p>"
        yield "<h3>Summary</h3>"
        yield "<table>"
        rows = (
            ("Reports", str(stats.reports)),
            ("Organizations", str(len(stats.organizations))),
            ("Total messages", str(total)),
            ("Fully aligned", f"{stats.aligned} ({_percent(stats.aligned, total)})"),
            ("Partial aligned", f"{stats.partial} ({_percent(stats.partial, total)})"),
            ("Not aligned", f"{stats.not_aligned} ({_percent(stats.not_aligned, total)})"),
            ("Quarantined", f"{stats.quarantined} ({_percent(stats.quarantined, total)})"),
            ("Rejected", f"{stats.rejected} ({_percent(stats.rejected, total)})"),
        )
        for label, value in rows:
            yield f"<tr><td>{escape(label)}:</td><td>{escape(value)}</td></tr>"
        yield "</table>"
        if stats.organizations:
            yield "<h3>Organizations</h3>"
            yield '<table style="border-collapse:collapse;">'
            yield "<tr><th>Name</th><th>Reports</th><th>Messages</th><th>Aligned</th></tr>"
            for name, org in self._org_rows():
                yield (
                    f"<tr><td>{escape(name)}</td><td>{org.reports}</td>"
                    f"<td>{org.messages}</td><td>{_percent(org.aligned, org.messages)}</td></tr>"
                )
            yield "</table>"
