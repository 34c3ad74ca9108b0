"""
Report sources.

A source enumerates raw report files from one origin (a directory, an
IMAP mailbox, an HTTP upload).  The consumer walks it with the cursor
methods, or simply iterates it, and reports the outcome of every item
back through :meth:`Source.accepted` or :meth:`Source.rejected`, so that
the origin can delete, archive or flag the item.
"""

from __future__ import annotations

import abc
import enum
from collections.abc import Iterator
from dataclasses import dataclass


class SourceType(enum.IntEnum):
    """Kinds of report origin."""

    UPLOADED_FILE = 1
    MAILBOX = 2
    DIRECTORY = 3

    def to_string(self) -> str:
        return self.name.lower()


@dataclass
class ReportFile:
    """One item produced by a source.

    ``data`` is None when the item carries no report at all; ``message``
    then explains why.
    """

    filename: str
    data: bytes | None
    message: str | None = None


class Source(abc.ABC):
    """Abstract cursor over the report files of one origin.

    Iterating the same source from two places at once is not supported.
    """

    def __init__(self, data) -> None:
        self.data = data

    # ------------------------------------------------------------------
    # Cursor interface
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def current(self) -> ReportFile:
        """Return the item under the cursor."""

    @abc.abstractmethod
    def key(self) -> int:
        """Return the cursor position."""

    @abc.abstractmethod
    def next(self) -> None:
        """Advance the cursor."""

    @abc.abstractmethod
    def rewind(self) -> None:
        """Reset the cursor to the first item, re-reading the origin if needed."""

    @abc.abstractmethod
    def valid(self) -> bool:
        """Return False once the cursor is past the last item."""

    @abc.abstractmethod
    def type(self) -> SourceType:
        """Return the kind of origin."""

    # ------------------------------------------------------------------
    # Outcome callbacks
    # ------------------------------------------------------------------

    def accepted(self) -> None:
        """Called when the current report has been successfully processed."""

    def rejected(self) -> None:
        """Called when the current report has been rejected."""

    # ------------------------------------------------------------------
    # Python protocols
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release any connection held by the source."""

    def __iter__(self) -> Iterator[ReportFile]:
        self.rewind()
        while self.valid():
            yield self.current()
            self.next()

    def __enter__(self) -> Source:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
