"""
Configuration module for DMARC Desk.

Loads settings from environment variables with sensible defaults.  The
mailer and mailbox groups are also exposed as small dataclasses so that the
dispatcher and the IMAP source receive their settings explicitly.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass


def _env_bool(name: str, default: str = "False") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration shared by all environments."""

    # Security
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    DEBUG: bool = _env_bool("DEBUG")

    # Database
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL",
        "sqlite:///dmarcdesk.db",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    # Session hardening
    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SAMESITE: str = "Lax"
    SESSION_COOKIE_SECURE: bool = _env_bool("SESSION_COOKIE_SECURE")

    # Upload / payload limits
    MAX_CONTENT_LENGTH: int = 8 * 1024 * 1024  # 8 MB

    # CSRF protection (Flask-WTF)
    WTF_CSRF_ENABLED: bool = True

    # Outgoing mail
    MAILER_DEFAULT: str = os.environ.get("MAILER_DEFAULT", "")
    MAILER_METHOD: str = os.environ.get("MAILER_METHOD", "default")  # default | smtp
    MAILER_SMTP_HOST: str = os.environ.get("MAILER_SMTP_HOST", "localhost")
    MAILER_SMTP_PORT: int = int(os.environ.get("MAILER_SMTP_PORT", "25"))
    MAILER_SMTP_STARTTLS: bool = _env_bool("MAILER_SMTP_STARTTLS")
    MAILER_USERNAME: str = os.environ.get("MAILER_USERNAME", "")
    MAILER_PASSWORD: str = os.environ.get("MAILER_PASSWORD", "")
    MAILER_FROM: str = os.environ.get("MAILER_FROM", "noreply@localhost")
    MAILER_FROM_NAME: str = os.environ.get("MAILER_FROM_NAME", "")
    MAILER_SENDMAIL_PATH: str = os.environ.get("MAILER_SENDMAIL_PATH", "/usr/sbin/sendmail")

    # Incoming reports mailbox (IMAP)
    MAILBOX_HOST: str = os.environ.get("MAILBOX_HOST", "")
    MAILBOX_PORT: int | None = int(os.environ["MAILBOX_PORT"]) if os.environ.get("MAILBOX_PORT") else None
    MAILBOX_SSL: bool = _env_bool("MAILBOX_SSL", "True")
    MAILBOX_USERNAME: str = os.environ.get("MAILBOX_USERNAME", "")
    MAILBOX_PASSWORD: str = os.environ.get("MAILBOX_PASSWORD", "")
    MAILBOX_FOLDER: str = os.environ.get("MAILBOX_FOLDER", "INBOX")
    MAILBOX_PROCESSED_FOLDER: str = os.environ.get("MAILBOX_PROCESSED_FOLDER", "")
    MAILBOX_FAILED_FOLDER: str = os.environ.get("MAILBOX_FAILED_FOLDER", "")

    # Application-level defaults
    REPORTS_PER_PAGE: int = 25


@dataclass(frozen=True)
class MailerConfig:
    """Settings consumed by :class:`dmarcdesk.mail.MailDispatcher`."""

    method: str = "default"
    default_to: str = ""
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_starttls: bool = False
    username: str = ""
    password: str = ""
    from_addr: str = "noreply@localhost"
    from_name: str = ""
    sendmail_path: str = "/usr/sbin/sendmail"
    debug: bool = False

    @classmethod
    def from_mapping(cls, config: Mapping) -> MailerConfig:
        """Build the mailer settings from a Flask config mapping."""
        return cls(
            method=config.get("MAILER_METHOD") or "default",
            default_to=config.get("MAILER_DEFAULT") or "",
            smtp_host=config.get("MAILER_SMTP_HOST") or "localhost",
            smtp_port=int(config.get("MAILER_SMTP_PORT") or 25),
            smtp_starttls=bool(config.get("MAILER_SMTP_STARTTLS", False)),
            username=config.get("MAILER_USERNAME") or "",
            password=config.get("MAILER_PASSWORD") or "",
            from_addr=config.get("MAILER_FROM") or "noreply@localhost",
            from_name=config.get("MAILER_FROM_NAME") or "",
            sendmail_path=config.get("MAILER_SENDMAIL_PATH") or "/usr/sbin/sendmail",
            debug=bool(config.get("DEBUG", False)),
        )


@dataclass(frozen=True)
class MailboxSettings:
    """Connection data for :class:`dmarcdesk.sources.mailbox.MailboxSource`."""

    host: str
    username: str
    password: str
    port: int | None = None
    ssl: bool = True
    folder: str = "INBOX"
    processed_folder: str = ""
    failed_folder: str = ""

    @classmethod
    def from_mapping(cls, config: Mapping) -> MailboxSettings:
        """Build the mailbox settings from a Flask config mapping."""
        return cls(
            host=config.get("MAILBOX_HOST") or "",
            username=config.get("MAILBOX_USERNAME") or "",
            password=config.get("MAILBOX_PASSWORD") or "",
            port=config.get("MAILBOX_PORT"),
            ssl=bool(config.get("MAILBOX_SSL", True)),
            folder=config.get("MAILBOX_FOLDER") or "INBOX",
            processed_folder=config.get("MAILBOX_PROCESSED_FOLDER") or "",
            failed_folder=config.get("MAILBOX_FAILED_FOLDER") or "",
        )
