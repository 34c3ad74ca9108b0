"""
Directory report source.

Reads every regular file of a local directory, sorted by name.  Accepted
files are deleted; rejected files are moved into a ``failed``
subdirectory so that they are not picked up again.
"""

from __future__ import annotations

import logging
import os
import shutil

from dmarcdesk.exceptions import SoftError
from dmarcdesk.sources import ReportFile, Source, SourceType

logger = logging.getLogger(__name__)

FAILED_DIRECTORY = "failed"

# Reports bigger than this are most likely not reports.
_MAX_FILE_BYTES: int = 16 * 1024 * 1024


class DirectorySource(Source):
    """Source over the files of one directory."""

    def __init__(self, path: str) -> None:
        super().__init__(path)
        if not os.path.isdir(path):
            raise SoftError(f"The directory does not exist: {path}")
        self._files: list[str] = []
        self._index: int = 0

    @property
    def path(self) -> str:
        return self.data

    def rewind(self) -> None:
        self._files = sorted(
            name for name in os.listdir(self.path)
            if os.path.isfile(os.path.join(self.path, name))
        )
        self._index = 0
        logger.debug("DirectorySource: %d file(s) in %s", len(self._files), self.path)

    def valid(self) -> bool:
        return self._index < len(self._files)

    def key(self) -> int:
        return self._index

    def next(self) -> None:
        self._index += 1

    def current(self) -> ReportFile:
        name = self._files[self._index]
        full_path = os.path.join(self.path, name)
        if os.path.getsize(full_path) > _MAX_FILE_BYTES:
            return ReportFile(name, None, "The file is too large")
        with open(full_path, "rb") as fh:
            return ReportFile(name, fh.read())

    def type(self) -> SourceType:
        return SourceType.DIRECTORY

    def accepted(self) -> None:
        full_path = os.path.join(self.path, self._files[self._index])
        try:
            os.remove(full_path)
        except OSError as exc:
            logger.error("DirectorySource: could not remove %s: %s", full_path, exc)

    def rejected(self) -> None:
        name = self._files[self._index]
        failed_dir = os.path.join(self.path, FAILED_DIRECTORY)
        try:
            os.makedirs(failed_dir, exist_ok=True)
            shutil.move(os.path.join(self.path, name), os.path.join(failed_dir, name))
        except OSError as exc:
            logger.error("DirectorySource: could not move %s to %s: %s", name, failed_dir, exc)
