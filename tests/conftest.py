"""
Shared pytest fixtures for the DMARC Desk test suite.

All fixtures use an in-memory SQLite database so tests are fully
isolated and require no external services, mail servers or mailboxes.

The ``app`` fixture does not keep an application context pushed: every
test client request gets its own context (and so its own Flask-Login
user), and tests open ``with app.app_context():`` blocks to inspect the
database.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from dmarcdesk import create_app
from dmarcdesk import db as _db
from dmarcdesk.models import Domain, User, UserLevel

# ---------------------------------------------------------------------------
# Test configuration
# ---------------------------------------------------------------------------


class TestConfig:
    """Minimal Flask config for automated testing."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    SECRET_KEY = "test-secret-key-not-for-production"
    # NOTE: Do NOT set SERVER_NAME here; it causes 404s in the test client
    # because all routes would need the Host header to match exactly.
    LOGIN_DISABLED = False
    REPORTS_PER_PAGE = 2

    MAILER_METHOD = "smtp"
    MAILER_DEFAULT = "dmarc@example.com"
    MAILER_SMTP_HOST = "smtp.example.com"
    MAILER_SMTP_PORT = 25
    MAILER_FROM = "noreply@example.com"
    MAILER_FROM_NAME = "DMARC Desk"


# name -> (level, password)
USERS: dict[str, tuple[UserLevel, str]] = {
    "admin": (UserLevel.ADMIN, "adminpass123"),
    "admin2": (UserLevel.ADMIN, "admin2pass123"),
    "manager": (UserLevel.MANAGER, "managerpass123"),
    "user": (UserLevel.USER, "userpass123"),
}

JSON_HEADERS = {"Accept": "application/json"}


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def app():
    """Create a Flask application instance backed by an in-memory database.

    A fresh database is created for every test function and torn down
    after the function completes, guaranteeing full isolation.
    """
    flask_app = create_app(TestConfig)

    with flask_app.app_context():
        _db.create_all()
        for name, (level, password) in USERS.items():
            user = User(name=name, level=int(level), enabled=True, email=f"{name}@example.com")
            user.set_password(password)
            _db.session.add(user)
        _db.session.add(Domain(fqdn="example.com", active=True, description="Main domain"))
        _db.session.commit()

    yield flask_app

    with flask_app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """Return a Flask test client (unauthenticated)."""
    return app.test_client()


def _login_client(app, name: str):
    test_client = app.test_client()
    response = test_client.post(
        "/auth/login",
        json={"username": name, "password": USERS[name][1]},
    )
    assert response.status_code == 200, response.get_data(as_text=True)
    return test_client


@pytest.fixture(scope="function")
def admin_client(app):
    """Return a test client logged in as ``admin``."""
    return _login_client(app, "admin")


@pytest.fixture(scope="function")
def manager_client(app):
    """Return a test client logged in as ``manager``."""
    return _login_client(app, "manager")


@pytest.fixture(scope="function")
def user_client(app):
    """Return a test client logged in as ``user``."""
    return _login_client(app, "user")


@pytest.fixture(scope="function")
def db(app):
    """Yield the SQLAlchemy db object within an active application context.

    Do not issue test client requests while this context is active.
    """
    with app.app_context():
        yield _db


# ---------------------------------------------------------------------------
# Sample report data
# ---------------------------------------------------------------------------


def make_report_xml(
    report_id: str = "rep-1",
    org_name: str = "google.com",
    domain: str = "example.com",
    begin: int = 1700000000,
    end: int = 1700086400,
    records: list[tuple[str, int, str, str, str]] | None = None,
) -> bytes:
    """Build a DMARC aggregate report.

    *records* holds ``(source_ip, count, disposition, dkim, spf)`` tuples.
    """
    if records is None:
        records = [
            ("198.51.100.1", 10, "none", "pass", "pass"),
            ("203.0.113.5", 3, "quarantine", "fail", "fail"),
        ]
    rows = "".join(
        f"""
  <record>
    <row>
      <source_ip>{ip}</source_ip>
      <count>{count}</count>
      <policy_evaluated>
        <disposition>{disposition}</disposition>
        <dkim>{dkim}</dkim>
        <spf>{spf}</spf>
      </policy_evaluated>
    </row>
    <identifiers>
      <header_from>{domain}</header_from>
    </identifiers>
  </record>"""
        for ip, count, disposition, dkim, spf in records
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<feedback>
  <report_metadata>
    <org_name>{org_name}</org_name>
    <email>noreply-dmarc@{org_name}</email>
    <report_id>{report_id}</report_id>
    <date_range>
      <begin>{begin}</begin>
      <end>{end}</end>
    </date_range>
  </report_metadata>
  <policy_published>
    <domain>{domain}</domain>
    <adkim>r</adkim>
    <aspf>r</aspf>
    <p>reject</p>
    <pct>100</pct>
  </policy_published>{rows}
</feedback>
""".encode()


def utc(*args: int) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)
