"""
Tests for the summary report: period ranges, statistics, the combined
multi-domain message and the ``summary_report.py`` command line script.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from conftest import make_report_xml, utc

import summary_report
from dmarcdesk.exceptions import SoftError
from dmarcdesk.mail import MailBody
from dmarcdesk.models import Domain
from dmarcdesk.reports.fetcher import store_report
from dmarcdesk.reports.mailing import (
    HTML_SEPARATOR,
    TEXT_SEPARATOR,
    compose_summary,
    resolve_domains,
    send_summary,
)
from dmarcdesk.reports.parser import parse_dmarc_attachment
from dmarcdesk.reports.summary import SummaryReport
from dmarcdesk.sources import SourceType

# Wednesday
NOW = utc(2024, 3, 13, 15, 30)

_FEB_10 = 1707523200  # 2024-02-10T00:00:00Z
_MAR_05 = 1709596800  # 2024-03-05T00:00:00Z
_DAY = 86400


@pytest.fixture
def february(db):
    """example.com gets two February reports and one in March; other.org exists without reports."""
    samples = [
        dict(report_id="g-1", org_name="google.com", begin=_FEB_10, end=_FEB_10 + _DAY),
        dict(report_id="y-1", org_name="yahoo.com", begin=_FEB_10, end=_FEB_10 + _DAY,
             records=[("192.0.2.10", 5, "reject", "pass", "fail")]),
        dict(report_id="g-2", org_name="google.com", begin=_MAR_05, end=_MAR_05 + _DAY),
    ]
    for sample in samples:
        store_report(parse_dmarc_attachment("r.xml", make_report_xml(**sample)), SourceType.MAILBOX)
    db.session.add(Domain(fqdn="other.org", active=True))
    db.session.commit()
    return db


def _domain(db, fqdn: str) -> Domain:
    return db.session.execute(db.select(Domain).where(Domain.fqdn == fqdn)).scalars().one()


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


def test_lastweek_runs_monday_to_monday():
    report = SummaryReport("lastweek", now=NOW)
    assert report.start == utc(2024, 3, 4)
    assert report.end == utc(2024, 3, 11)
    assert report.subject() == "Weekly DMARC summary report"


def test_lastweek_on_monday():
    report = SummaryReport("lastweek", now=utc(2024, 3, 11, 0, 5))
    assert report.start == utc(2024, 3, 4)
    assert report.end == utc(2024, 3, 11)


def test_lastmonth_is_previous_calendar_month():
    report = SummaryReport("lastmonth", now=NOW)
    assert report.start == utc(2024, 2, 1)
    assert report.end == utc(2024, 3, 1)
    assert report.subject() == "Monthly DMARC summary report"


def test_lastmonth_in_january():
    report = SummaryReport("lastmonth", now=utc(2024, 1, 20))
    assert report.start == utc(2023, 12, 1)
    assert report.end == utc(2024, 1, 1)


def test_lastndays():
    report = SummaryReport("lastndays:10", now=NOW)
    assert report.start == utc(2024, 3, 3)
    assert report.end == utc(2024, 3, 13)
    assert report.subject() == "DMARC summary report for the last 10 days"


@pytest.mark.parametrize("period", ["lastndays:0", "lastndays:", "lastndays:x", "lastndays:-3"])
def test_lastndays_bad_number(period):
    with pytest.raises(SoftError, match="The number of days is incorrect"):
        SummaryReport(period, now=NOW)


@pytest.mark.parametrize("period", ["lastndays:1000000", "lastndays:99999999999"])
def test_lastndays_too_many_days(period):
    with pytest.raises(SoftError, match="The number of days is incorrect"):
        SummaryReport(period, now=NOW)


@pytest.mark.parametrize("period", ["", "yesterday", "lastyear"])
def test_unknown_period(period):
    with pytest.raises(SoftError, match="The period parameter is incorrect"):
        SummaryReport(period, now=NOW)


# ---------------------------------------------------------------------------
# Statistics and rendering
# ---------------------------------------------------------------------------


def test_stats_cover_period_only(february):
    report = SummaryReport("lastmonth", now=NOW)
    report.set_domain(_domain(february, "example.com"))

    stats = report.stats()

    assert stats.reports == 2
    assert stats.messages == 18
    assert stats.aligned == 10
    assert stats.partial == 5
    assert stats.not_aligned == 3
    assert stats.quarantined == 3
    assert stats.rejected == 5
    assert sorted(stats.organizations) == ["google.com", "yahoo.com"]
    assert stats.organizations["google.com"].messages == 13


def test_text_rendering(february):
    report = SummaryReport("lastmonth", now=NOW)
    report.set_domain(_domain(february, "example.com"))

    lines = list(report.text())

    assert lines[0] == "# Domain: example.com"
    assert lines[1] == " Range: 2024-02-01 - 2024-02-29"
    assert " Total messages:   18" in lines
    assert " Fully aligned:    10 (56%)" in lines
    assert " Partial aligned:  5 (28%)" in lines
    assert " Not aligned:      3 (17%)" in lines
    assert "## Organizations" in lines


def test_html_rendering_is_escaped(february):
    report = SummaryReport("lastmonth", now=NOW)
    report.set_domain(_domain(february, "example.com"))

    html = "\n".join(report.html())

    assert "<h2>Domain: example.com</h2>" in html
    assert "<td>Total messages:</td><td>18</td>" in html
    assert "<td>yahoo.com</td>" in html


def test_empty_domain_reports_zero(february):
    report = SummaryReport("lastmonth", now=NOW)
    report.set_domain(_domain(february, "other.org"))

    lines = list(report.text())

    assert " Reports:          0" in lines
    assert " Fully aligned:    0 (0%)" in lines
    assert "## Organizations" not in lines


# ---------------------------------------------------------------------------
# Combined message
# ---------------------------------------------------------------------------


def test_resolve_all_domains(february):
    assert [d.fqdn for d in resolve_domains("all")] == ["example.com", "other.org"]


def test_resolve_keeps_unknown_names(february):
    domains = resolve_domains("example.com, Missing.org")
    assert [d.fqdn for d in domains] == ["example.com", "missing.org"]
    assert domains[1].id is None


def test_compose_multiple_domains_with_missing_one(february):
    domains = resolve_domains("example.com,missing.org,other.org")

    message = compose_summary(domains, "lastmonth", "text+html", now=NOW)

    assert message.subject == "Monthly DMARC summary report for 3 domains"
    assert message.text.count(TEXT_SEPARATOR) == 2
    assert '# Domain "missing.org" does not exist' in message.text
    assert message.text[0] == "# Domain: example.com"
    assert "# Domain: other.org" in message.text

    assert message.html[0] == "<html><body>"
    assert message.html[-1] == "</body></html>"
    assert message.html.count(HTML_SEPARATOR) == 2
    assert any("missing.org" in line and "does not exist" in line for line in message.html)


def test_compose_single_domain_subject(february):
    message = compose_summary(resolve_domains("example.com"), "lastweek", "text", now=NOW)

    assert message.subject == "Weekly DMARC summary report for example.com"
    assert message.html is None
    assert TEXT_SEPARATOR not in message.text


def test_compose_single_missing_domain_is_fatal(february):
    with pytest.raises(SoftError, match='Domain "missing.org" does not exist'):
        compose_summary(resolve_domains("missing.org"), "lastmonth", "text", now=NOW)


def test_compose_html_only(february):
    message = compose_summary(resolve_domains("example.com"), "lastmonth", "html", now=NOW)

    assert message.text is None
    assert message.body().content_type() == "text/html"


# ---------------------------------------------------------------------------
# send_summary
# ---------------------------------------------------------------------------


def _dispatcher(default_to: str = "dmarc@example.com") -> MagicMock:
    dispatcher = MagicMock()
    dispatcher.config.default_to = default_to
    return dispatcher


def test_send_summary_uses_default_recipient(february):
    dispatcher = _dispatcher()

    message = send_summary(dispatcher, "all", "lastmonth", now=NOW)

    dispatcher.send.assert_called_once()
    to, subject, body = dispatcher.send.call_args.args
    assert to == "dmarc@example.com"
    assert subject == message.subject == "Monthly DMARC summary report for 2 domains"
    assert isinstance(body, MailBody)
    assert body.content_type() == "text/plain"


def test_send_summary_explicit_recipient(february):
    dispatcher = _dispatcher()

    send_summary(dispatcher, "example.com", "lastmonth", emailto="boss@example.com", fmt="text+html", now=NOW)

    to, _subject, body = dispatcher.send.call_args.args
    assert to == "boss@example.com"
    assert body.content_type() == "multipart/alternative"


@pytest.mark.parametrize(
    ("domain", "period", "fmt", "message"),
    [
        ("", "lastmonth", "text", 'Parameter "domain" is not specified'),
        ("all", "", "text", 'Parameter "period" is not specified'),
        ("all", "lastmonth", "pdf", "Unknown email message format: pdf"),
    ],
)
def test_send_summary_parameter_errors(february, domain, period, fmt, message):
    dispatcher = _dispatcher()

    with pytest.raises(SoftError, match=message):
        send_summary(dispatcher, domain, period, fmt=fmt, now=NOW)

    dispatcher.send.assert_not_called()


# ---------------------------------------------------------------------------
# Command line script
# ---------------------------------------------------------------------------


def test_cli_sends_report(app):
    with patch("dmarcdesk.create_app", return_value=app), \
         patch("dmarcdesk.mail.smtplib.SMTP") as mock_smtp:
        code = summary_report.main(["domain=example.com", "period=lastmonth", "format=html"])

    assert code == 0
    mock_smtp.assert_called_once_with("smtp.example.com", 25, timeout=30)
    smtp = mock_smtp.return_value.__enter__.return_value
    sent = smtp.send_message.call_args.args[0]
    assert sent["To"] == "dmarc@example.com"
    assert sent["Subject"].startswith("Monthly DMARC summary report for example.com")
    assert sent.get_content_type() == "text/html"


def test_cli_missing_parameter(app, capsys):
    with patch("dmarcdesk.create_app", return_value=app):
        code = summary_report.main(["period=lastmonth"])

    assert code == 1
    assert capsys.readouterr().out.strip() == 'Error: Parameter "domain" is not specified'


def test_cli_unknown_domain(app, capsys):
    with patch("dmarcdesk.create_app", return_value=app):
        code = summary_report.main(["domain=nowhere.example", "period=lastweek"])

    assert code == 1
    assert 'Domain "nowhere.example" does not exist' in capsys.readouterr().out


def test_cli_mailer_failure(app, capsys):
    with patch("dmarcdesk.create_app", return_value=app), \
         patch("dmarcdesk.mail.smtplib.SMTP", side_effect=OSError("connection refused")):
        code = summary_report.main(["domain=all", "period=lastmonth"])

    assert code == 1
    assert "Error: Mailer Error: connection refused" in capsys.readouterr().out


def test_cli_too_many_days(app, capsys):
    with patch("dmarcdesk.create_app", return_value=app):
        code = summary_report.main(["domain=all", "period=lastndays:1000000"])

    assert code == 1
    assert capsys.readouterr().out.strip() == "Error: The number of days is incorrect"


def test_cli_unexpected_error(app, capsys):
    with patch("dmarcdesk.create_app", return_value=app), \
         patch("dmarcdesk.reports.mailing.send_summary", side_effect=RuntimeError("boom")):
        code = summary_report.main(["domain=all", "period=lastmonth"])

    assert code == 1
    assert "Error: boom" in capsys.readouterr().out
