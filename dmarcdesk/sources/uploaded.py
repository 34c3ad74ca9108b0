"""Report source over files uploaded in a multipart HTTP request."""

from __future__ import annotations

from werkzeug.datastructures import FileStorage

from dmarcdesk.sources import ReportFile, Source, SourceType

# Maximum file size accepted for upload (1 MiB).
MAX_UPLOAD_BYTES: int = 1 * 1024 * 1024


class UploadedFilesSource(Source):
    """Source over a list of werkzeug ``FileStorage`` objects."""

    def __init__(self, files: list[FileStorage]) -> None:
        super().__init__([f for f in files if f and f.filename])
        self._index: int = 0

    def rewind(self) -> None:
        self._index = 0

    def valid(self) -> bool:
        return self._index < len(self.data)

    def key(self) -> int:
        return self._index

    def next(self) -> None:
        self._index += 1

    def current(self) -> ReportFile:
        uploaded: FileStorage = self.data[self._index]
        raw_bytes = uploaded.read(MAX_UPLOAD_BYTES + 1)
        uploaded.seek(0)
        if len(raw_bytes) > MAX_UPLOAD_BYTES:
            return ReportFile(uploaded.filename, None, "The file is too large")
        return ReportFile(uploaded.filename, raw_bytes)

    def type(self) -> SourceType:
        return SourceType.UPLOADED_FILE
