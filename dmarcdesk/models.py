"""
SQLAlchemy models for DMARC Desk.

All models are defined here:
  User, Domain, Report, ReportLog
"""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from dmarcdesk import db
from dmarcdesk.exceptions import SoftError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


# ---------------------------------------------------------------------------
# UserLevel
# ---------------------------------------------------------------------------


class UserLevel(enum.IntEnum):
    """Ordered access levels; a higher value means more privileges."""

    USER = 10
    MANAGER = 50
    ADMIN = 99

    @classmethod
    def from_string(cls, value: str) -> UserLevel:
        """Convert ``"user"``, ``"manager"`` or ``"admin"`` to a level."""
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise SoftError(f"Unknown user level: {value}") from None

    def to_string(self) -> str:
        return self.name.lower()


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------


class User(UserMixin, db.Model):
    """Application user with hashed password storage."""

    __tablename__ = "users"

    id: db.Mapped[int] = db.mapped_column(db.Integer, primary_key=True, autoincrement=True)
    name: db.Mapped[str] = db.mapped_column(db.String(64), unique=True, nullable=False)
    level: db.Mapped[int] = db.mapped_column(db.Integer, default=int(UserLevel.USER), nullable=False)
    enabled: db.Mapped[bool] = db.mapped_column(db.Boolean, default=True, nullable=False)
    password_hash: db.Mapped[str | None] = db.mapped_column(db.String(256), nullable=True)
    email: db.Mapped[str | None] = db.mapped_column(db.String(255), nullable=True)
    created_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # ------------------------------------------------------------------
    # Flask-Login
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:  # type: ignore[override]
        return self.enabled

    @property
    def user_level(self) -> UserLevel:
        return UserLevel(self.level)

    # ------------------------------------------------------------------
    # Password helpers
    # ------------------------------------------------------------------

    def set_password(self, password: str) -> None:
        """Hash *password* and store the result."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Return True if *password* matches the stored hash."""
        if not self.password_hash or not password:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> dict:
        """Public representation; the password is reported as a flag only."""
        return {
            "name": self.name,
            "level": self.user_level.to_string(),
            "enabled": self.enabled,
            "password": bool(self.password_hash),
            "email": self.email,
            "created_time": _isoformat(self.created_at),
            "updated_time": _isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name!r} level={self.level}>"


# ---------------------------------------------------------------------------
# Domain
# ---------------------------------------------------------------------------


class Domain(db.Model):
    """A domain that DMARC reports are collected for."""

    __tablename__ = "domains"

    id: db.Mapped[int] = db.mapped_column(db.Integer, primary_key=True)
    fqdn: db.Mapped[str] = db.mapped_column(db.String(255), unique=True, nullable=False)
    active: db.Mapped[bool] = db.mapped_column(db.Boolean, default=True, nullable=False)
    description: db.Mapped[str | None] = db.mapped_column(db.Text, nullable=True)
    created_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    reports: db.Mapped[list[Report]] = db.relationship(
        "Report",
        back_populates="domain",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    def to_dict(self) -> dict:
        return {
            "fqdn": self.fqdn,
            "active": self.active,
            "description": self.description,
            "created_time": _isoformat(self.created_at),
            "updated_time": _isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Domain id={self.id} fqdn={self.fqdn!r} active={self.active}>"


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


class Report(db.Model):
    """DMARC aggregate report (RFC 7489)."""

    __tablename__ = "reports"
    __table_args__ = (
        db.UniqueConstraint("report_id", "org_name", name="uq_report_id_org"),
        db.Index("ix_reports_domain_range", "domain_id", "begin_date", "end_date"),
    )

    id: db.Mapped[int] = db.mapped_column(db.Integer, primary_key=True)
    report_id: db.Mapped[str] = db.mapped_column(db.String(200), nullable=False)
    org_name: db.Mapped[str] = db.mapped_column(db.String(200), nullable=False)
    email: db.Mapped[str | None] = db.mapped_column(db.String(255), nullable=True)
    domain_id: db.Mapped[int] = db.mapped_column(
        db.Integer, db.ForeignKey("domains.id", ondelete="CASCADE"), nullable=False
    )
    begin_date: db.Mapped[datetime] = db.mapped_column(db.DateTime(timezone=True), nullable=False)
    end_date: db.Mapped[datetime] = db.mapped_column(db.DateTime(timezone=True), nullable=False)
    total_messages: db.Mapped[int] = db.mapped_column(db.Integer, default=0, nullable=False)
    pass_count: db.Mapped[int] = db.mapped_column(db.Integer, default=0, nullable=False)
    fail_count: db.Mapped[int] = db.mapped_column(db.Integer, default=0, nullable=False)
    records_json: db.Mapped[str | None] = db.mapped_column(db.Text, nullable=True)
    policy_published_json: db.Mapped[str | None] = db.mapped_column(db.Text, nullable=True)
    source: db.Mapped[str] = db.mapped_column(db.String(20), nullable=False)
    ingested_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )

    domain: db.Mapped[Domain] = db.relationship("Domain", back_populates="reports")

    def get_records(self) -> list:
        """Deserialise records_json, returning an empty list on failure."""
        return _load_json(self.records_json, default=[])

    def get_policy_published(self) -> dict:
        """Deserialise policy_published_json."""
        return _load_json(self.policy_published_json)

    def to_dict(self, with_records: bool = False) -> dict:
        result = {
            "id": self.id,
            "report_id": self.report_id,
            "org_name": self.org_name,
            "email": self.email,
            "domain": self.domain.fqdn if self.domain else None,
            "begin_date": _isoformat(self.begin_date),
            "end_date": _isoformat(self.end_date),
            "total_messages": self.total_messages,
            "pass_count": self.pass_count,
            "fail_count": self.fail_count,
            "source": self.source,
            "ingested_at": _isoformat(self.ingested_at),
        }
        if with_records:
            result["policy_published"] = self.get_policy_published()
            result["records"] = self.get_records()
        return result

    def __repr__(self) -> str:
        return (
            f"<Report id={self.id} report_id={self.report_id!r}"
            f" org={self.org_name!r} domain_id={self.domain_id}>"
        )


# ---------------------------------------------------------------------------
# ReportLog
# ---------------------------------------------------------------------------


class ReportLog(db.Model):
    """Outcome of processing one item taken from a report source."""

    __tablename__ = "report_logs"

    id: db.Mapped[int] = db.mapped_column(db.Integer, primary_key=True)
    source: db.Mapped[str] = db.mapped_column(db.String(20), nullable=False)
    filename: db.Mapped[str | None] = db.mapped_column(db.String(255), nullable=True)
    report_id: db.Mapped[str | None] = db.mapped_column(db.String(200), nullable=True)
    domain: db.Mapped[str | None] = db.mapped_column(db.String(255), nullable=True)
    success: db.Mapped[bool] = db.mapped_column(db.Boolean, nullable=False)
    message: db.Mapped[str | None] = db.mapped_column(db.Text, nullable=True)
    created_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<ReportLog id={self.id} source={self.source!r}"
            f" filename={self.filename!r} success={self.success}>"
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_json(value: str | None, *, default: object = None) -> object:
    """Safely deserialise a JSON string, returning *default* on any error."""
    if default is None:
        default = {}
    if not value:
        return default
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return default
