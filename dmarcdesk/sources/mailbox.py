"""
IMAP mailbox report source.

Walks the unseen messages of one IMAP folder and returns the first report
attachment (``.zip``, ``.gz`` or ``.xml``) of each message.  Processed
messages are flagged as seen and, when a folder is configured, moved to
the processed or failed folder.
"""

from __future__ import annotations

import email
import email.policy
import logging
from email.message import EmailMessage

from imapclient import SEEN, IMAPClient
from imapclient.exceptions import IMAPClientError

from dmarcdesk.config import MailboxSettings
from dmarcdesk.exceptions import RuntimeAppError
from dmarcdesk.sources import ReportFile, Source, SourceType

logger = logging.getLogger(__name__)

_ATTACHMENT_EXTENSIONS = (".zip", ".gz", ".xml")
_ATTACHMENT_TYPES = frozenset({
    "application/zip",
    "application/x-zip-compressed",
    "application/gzip",
    "application/x-gzip",
    "application/xml",
    "text/xml",
})


def find_report_attachment(message: EmailMessage) -> tuple[str, bytes] | None:
    """Return ``(filename, payload)`` of the first report attachment."""
    for part in message.walk():
        if part.is_multipart():
            continue
        filename = part.get_filename() or ""
        if filename.lower().endswith(_ATTACHMENT_EXTENSIONS) or part.get_content_type() in _ATTACHMENT_TYPES:
            payload = part.get_payload(decode=True)
            if payload:
                return filename or "report.xml", payload
    return None


class MailboxSource(Source):
    """Source over the unseen messages of an IMAP folder."""

    def __init__(self, settings: MailboxSettings, client_factory=IMAPClient) -> None:
        super().__init__(settings)
        self._client_factory = client_factory
        self._client: IMAPClient | None = None
        self._uids: list[int] = []
        self._index: int = 0

    @property
    def settings(self) -> MailboxSettings:
        return self.data

    def _connect(self) -> IMAPClient:
        if self._client is None:
            s = self.settings
            try:
                client = self._client_factory(s.host, port=s.port, ssl=s.ssl)
                client.login(s.username, s.password)
            except (IMAPClientError, OSError) as exc:
                raise RuntimeAppError(f"Failed to connect to the mailbox {s.username}@{s.host}") from exc
            self._client = client
            logger.info("MailboxSource: connected to %s as %s", s.host, s.username)
        return self._client

    def rewind(self) -> None:
        client = self._connect()
        client.select_folder(self.settings.folder)
        self._uids = list(client.search(["UNSEEN"]))
        self._index = 0
        logger.info(
            "MailboxSource: %d unseen message(s) in %s",
            len(self._uids),
            self.settings.folder,
        )

    def valid(self) -> bool:
        return self._index < len(self._uids)

    def key(self) -> int:
        return self._index

    def next(self) -> None:
        self._index += 1

    def current(self) -> ReportFile:
        uid = self._uids[self._index]
        response = self._connect().fetch([uid], ["RFC822"])
        raw: bytes = response[uid][b"RFC822"]
        message = email.message_from_bytes(raw, policy=email.policy.default)
        subject = str(message.get("Subject", ""))
        attachment = find_report_attachment(message)
        if attachment is None:
            return ReportFile(f"message {uid}", None, f"No report attachment found in {subject!r}")
        filename, payload = attachment
        return ReportFile(filename, payload)

    def type(self) -> SourceType:
        return SourceType.MAILBOX

    def accepted(self) -> None:
        self._finish(self.settings.processed_folder)

    def rejected(self) -> None:
        self._finish(self.settings.failed_folder)

    def _finish(self, folder: str) -> None:
        uid = self._uids[self._index]
        client = self._connect()
        client.add_flags([uid], [SEEN])
        if not folder:
            return
        if client.has_capability("MOVE"):
            client.move([uid], folder)
        else:
            client.copy([uid], folder)
            client.delete_messages([uid])
            client.expunge()
        logger.debug("MailboxSource: message %d moved to %s", uid, folder)

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.logout()
            except (IMAPClientError, OSError) as exc:
                logger.warning("MailboxSource: logout failed: %s", exc)
            self._client = None
