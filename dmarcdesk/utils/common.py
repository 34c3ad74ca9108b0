"""
Record value tables and small request helpers.

  get_filter      - parse repeated ``filter=key:value`` query parameters
  month_to_range  - convert ``YYYY-MM`` into a half-open UTC date range
"""

from __future__ import annotations

from datetime import datetime, timezone

from werkzeug.datastructures import MultiDict

from dmarcdesk.exceptions import SoftError

# Alignment results as stored in report records, ordered worst to best.
ALIGN_RESULTS: tuple[str, ...] = ("fail", "unknown", "pass")

# Dispositions as stored in report records, ordered strictest first.
DISPOSITIONS: tuple[str, ...] = ("reject", "quarantine", "none")


def get_filter(args: MultiDict | None = None) -> dict[str, str] | None:
    """Return the ``filter`` query parameters as a key-value dict.

    Every ``filter`` entry has the form ``key:value`` and is split on the
    first colon only.  Entries without a colon are ignored and a later
    entry for the same key overwrites an earlier one.

    Args:
        args: Query parameters; defaults to ``flask.request.args``.

    Returns:
        None when no ``filter`` parameter was supplied, otherwise a dict
        (possibly empty).
    """
    if args is None:
        from flask import request

        args = request.args

    if "filter" not in args:
        return None

    result: dict[str, str] = {}
    for item in args.getlist("filter"):
        key, sep, value = item.partition(":")
        if sep:
            result[key] = value
    return result


def month_to_range(month: str) -> tuple[datetime, datetime]:
    """Convert a ``YYYY-MM`` string into ``(start, end)``.

    *start* is midnight UTC on the first day of the month and *end* is
    midnight UTC on the first day of the following month.

    Raises:
        SoftError: The string is malformed or out of range.
    """
    parts = month.split("-")
    if len(parts) != 2:
        raise SoftError("Incorrect date format")
    try:
        year = int(parts[0])
        mon = int(parts[1])
    except ValueError:
        raise SoftError("Incorrect date format") from None
    if year <= 0 or mon < 1 or mon > 12:
        raise SoftError("Incorrect month or year value")

    start = datetime(year, mon, 1, tzinfo=timezone.utc)
    if mon == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, mon + 1, 1, tzinfo=timezone.utc)
    return start, end
