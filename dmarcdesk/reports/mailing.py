"""
Summary report mailing job.

Builds the combined text and/or HTML summary for a list of domains and
hands it to the mail dispatcher.  Used by the ``summary_report.py`` CLI.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from markupsafe import escape

from dmarcdesk import db
from dmarcdesk.exceptions import SoftError
from dmarcdesk.mail import MailBody, MailDispatcher
from dmarcdesk.models import Domain
from dmarcdesk.reports.summary import SummaryReport

logger = logging.getLogger(__name__)

FORMATS: tuple[str, ...] = ("text", "html", "text+html")

TEXT_SEPARATOR = "-----------------------------------"
HTML_SEPARATOR = '<hr style="margin:2em 0;" />'


@dataclass
class SummaryMessage:
    """The composed summary mail, before delivery."""

    subject: str
    text: list[str] | None
    html: list[str] | None

    def body(self) -> MailBody:
        body = MailBody()
        if self.text is not None:
            body.set_text(self.text)
        if self.html is not None:
            body.set_html(self.html)
        return body


def resolve_domains(domain_arg: str) -> list[Domain]:
    """Turn ``all`` or a comma-separated list into Domain objects.

    Names that are not in the directory come back as transient
    ``Domain`` objects without an id, so the caller can report them.
    """
    if domain_arg == "all":
        return list(
            db.session.execute(db.select(Domain).order_by(Domain.fqdn)).scalars().all()
        )

    domains: list[Domain] = []
    for name in domain_arg.split(","):
        fqdn = name.strip().lower()
        if not fqdn:
            continue
        domain = db.session.execute(
            db.select(Domain).where(Domain.fqdn == fqdn)
        ).scalars().first()
        domains.append(domain if domain is not None else Domain(fqdn=fqdn))
    return domains


def compose_summary(
    domains: list[Domain],
    period: str,
    fmt: str = "text",
    now: datetime | None = None,
) -> SummaryMessage:
    """Render the summary of *domains* into the requested format(s).

    A missing domain is fatal when it is the only one; in a multi-domain
    run it is replaced by a "does not exist" notice.
    """
    if fmt not in FORMATS:
        raise SoftError(f"Unknown email message format: {fmt}")
    if not domains:
        raise SoftError("There are no domains to report on")

    report = SummaryReport(period, now=now)
    text: list[str] | None = [] if fmt in ("text", "text+html") else None
    html: list[str] | None = [] if fmt in ("html", "text+html") else None

    if html is not None:
        html.append("<html><body>")

    dom_cnt = len(domains)
    for i, domain in enumerate(domains):
        if i > 0:
            if text is not None:
                text.append(TEXT_SEPARATOR)
                text.append("")
            if html is not None:
                html.append(HTML_SEPARATOR)

        if domain.id is not None:
            report.set_domain(domain)
            if text is not None:
                text.extend(report.text())
            if html is not None:
                html.extend(report.html())
            continue

        nf_message = f'Domain "{domain.fqdn}" does not exist'
        if dom_cnt == 1:
            raise SoftError(nf_message)
        logger.warning("Summary report: %s", nf_message)
        if text is not None:
            text.append(f"# {nf_message}")
            text.append("")
        if html is not None:
            html.append(f"<h2>{escape(nf_message)}</h2>")

    if html is not None:
        html.append("</body></html>")

    if dom_cnt == 1:
        subject = f"{report.subject()} for {domains[0].fqdn}"
    else:
        subject = f"{report.subject()} for {dom_cnt} domains"

    return SummaryMessage(subject=subject, text=text, html=html)


def send_summary(
    dispatcher: MailDispatcher,
    domain_arg: str,
    period: str,
    emailto: str | None = None,
    fmt: str = "text",
    now: datetime | None = None,
) -> SummaryMessage:
    """Compose the summary and mail it; return what was sent."""
    if not domain_arg:
        raise SoftError('Parameter "domain" is not specified')
    if not period:
        raise SoftError('Parameter "period" is not specified')
    if fmt not in FORMATS:
        raise SoftError(f"Unknown email message format: {fmt}")

    recipient = emailto or dispatcher.config.default_to
    if not recipient:
        raise SoftError('Parameter "emailto" is not specified and there is no default recipient')

    message = compose_summary(resolve_domains(domain_arg), period, fmt, now=now)
    dispatcher.send(recipient, message.subject, message.body())
    return message
