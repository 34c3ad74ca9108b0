"""
Exception hierarchy and error formatters.

Two kinds of failures exist: user-facing ones (bad input, authorization,
missing objects) derived from :class:`SoftError`, and unexpected runtime
failures derived from :class:`RuntimeAppError`.  Both are rendered either
as a JSON result for the HTTP endpoints or as plain text for the CLI
scripts.
"""

from __future__ import annotations

import traceback


class AppError(Exception):
    """Base class for all errors raised by the application."""

    code: int = -1
    http_status: int = 500

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return self.message


class SoftError(AppError):
    """A user-facing error; reported without a stack trace."""

    http_status = 400


class NotFoundError(SoftError):
    """The requested object does not exist."""

    http_status = 404


class AuthenticationError(SoftError):
    """The caller is not logged in."""

    code = 401
    http_status = 401


class ForbiddenError(SoftError):
    """The caller is logged in but not allowed to do this."""

    code = 403
    http_status = 403


class RuntimeAppError(AppError):
    """An unexpected failure."""


class MailerError(RuntimeAppError):
    """Outgoing mail could not be delivered."""


def exception_result(exc: Exception, debug: bool = False) -> dict:
    """Return the JSON error payload for *exc*.

    Args:
        exc: The exception to describe.
        debug: When True, runtime errors carry their traceback in
            ``debug_info``.

    Returns:
        A dict with ``error_code`` and ``message`` keys.
    """
    if isinstance(exc, AppError):
        result = {"error_code": exc.code, "message": exc.message}
    else:
        result = {"error_code": -1, "message": "Internal error"}
    if debug and not isinstance(exc, SoftError):
        result["debug_info"] = {
            "type": type(exc).__name__,
            "content": str(exc),
            "trace": traceback.format_exception(type(exc), exc, exc.__traceback__),
        }
    return result


def exception_text(exc: Exception, debug: bool = False) -> str:
    """Return the CLI error text for *exc*."""
    if isinstance(exc, SoftError):
        return f"Error: {exc.message}\n"
    lines = [f"Error: {exc}"]
    if isinstance(exc, AppError) and exc.code != -1:
        lines.append(f"Error code: {exc.code}")
    if exc.__cause__ is not None:
        lines.append(f"Caused by: {exc.__cause__}")
    if debug:
        lines.append("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip())
    return "\n".join(lines) + "\n"
