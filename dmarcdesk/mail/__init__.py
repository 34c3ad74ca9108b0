"""
Outgoing mail.

:class:`MailBody` turns text and/or HTML line lists into an
:class:`email.message.EmailMessage`; :class:`MailDispatcher` delivers it
either through an SMTP server or through the local ``sendmail`` binary,
depending on ``MAILER_METHOD``.
"""

from __future__ import annotations

import logging
import smtplib
import subprocess
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid

from dmarcdesk.config import MailerConfig
from dmarcdesk.exceptions import MailerError, SoftError

logger = logging.getLogger(__name__)

_SENDMAIL_TIMEOUT: int = 60


class MailBody:
    """Text and HTML alternatives of a message."""

    def __init__(self) -> None:
        self.text: list[str] | None = None
        self.html: list[str] | None = None

    def set_text(self, lines: list[str]) -> None:
        self.text = list(lines)

    def set_html(self, lines: list[str]) -> None:
        self.html = list(lines)

    def content_type(self) -> str:
        if self.text is not None and self.html is not None:
            return "multipart/alternative"
        if self.html is not None:
            return "text/html"
        return "text/plain"

    def to_message(self) -> EmailMessage:
        """Build a headerless message carrying the body parts."""
        if self.text is None and self.html is None:
            raise SoftError("The message body is empty")
        message = EmailMessage()
        if self.text is not None:
            message.set_content("\n".join(self.text), subtype="plain", charset="utf-8")
            if self.html is not None:
                message.add_alternative("\n".join(self.html), subtype="html", charset="utf-8")
        else:
            message.set_content("\n".join(self.html), subtype="html", charset="utf-8")
        return message


class MailDispatcher:
    """Sends messages with the configured transport."""

    def __init__(self, config: MailerConfig) -> None:
        self.config = config

    def compose(self, to: str, subject: str, body: MailBody) -> EmailMessage:
        message = body.to_message()
        message["From"] = formataddr((self.config.from_name, self.config.from_addr))
        message["To"] = to
        message["Subject"] = subject
        message["Date"] = formatdate(localtime=True)
        message["Message-ID"] = make_msgid()
        return message

    def send(self, to: str, subject: str, body: MailBody) -> None:
        """Deliver the message or raise :class:`MailerError`."""
        if not to:
            raise SoftError("The recipient address is not specified")
        message = self.compose(to, subject, body)
        if self.config.method == "smtp":
            self._send_smtp(message)
        else:
            self._send_local(message)
        logger.info(
            "Mail sent: to=%r subject=%r method=%s",
            to, subject, self.config.method,
        )

    def _send_smtp(self, message: EmailMessage) -> None:
        cfg = self.config
        try:
            with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=30) as smtp:
                if cfg.debug:
                    smtp.set_debuglevel(1)
                if cfg.smtp_starttls:
                    smtp.starttls()
                if cfg.username:
                    smtp.login(cfg.username, cfg.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery failed via %s:%d: %s", cfg.smtp_host, cfg.smtp_port, exc)
            raise MailerError(f"Mailer Error: {exc}") from exc

    def _send_local(self, message: EmailMessage) -> None:
        cmd = [self.config.sendmail_path, "-t", "-i"]
        try:
            proc = subprocess.run(
                cmd,
                input=message.as_bytes(),
                capture_output=True,
                timeout=_SENDMAIL_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error("sendmail could not be run (%s): %s", self.config.sendmail_path, exc)
            raise MailerError(f"Mailer Error: {exc}") from exc
        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", "replace").strip()
            logger.error("sendmail exited with status %d: %s", proc.returncode, stderr)
            raise MailerError(f"Mailer Error: sendmail exited with status {proc.returncode}")
