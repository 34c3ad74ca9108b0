"""
Report fetcher script for DMARC Desk.

Pulls incoming DMARC aggregate reports from a local directory or from the
configured IMAP mailbox and stores them.  Meant to be run from cron.

USAGE
=====
  # Import every file of a directory (accepted files are deleted,
  # rejected ones are moved to DIR/failed)
  python fetch_reports.py --source directory --path /var/spool/dmarc

  # Import unseen messages of the MAILBOX_* mailbox
  python fetch_reports.py --source mailbox

EXIT CODES
==========
  0 - Every item was imported (or there was nothing to import)
  1 - At least one item was rejected, or the source could not be opened
"""

from __future__ import annotations

import argparse
import logging
import sys


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Fetch DMARC aggregate reports from a source.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--source",
        choices=("directory", "mailbox"),
        required=True,
        help="Where to take the reports from.",
    )
    parser.add_argument(
        "--path",
        metavar="DIR",
        default=None,
        help="Directory to read when --source is 'directory'.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Enable DEBUG-level logging output.",
    )
    args = parser.parse_args(argv)
    if args.source == "directory" and not args.path:
        parser.error("--path is required with --source directory")
    return args


def _configure_logging(verbose: bool) -> logging.Logger:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    return logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Run one fetch pass.

    Returns:
        Integer exit code: 0 for success, 1 for any rejected item or error.
    """
    args = _parse_args(argv)
    logger = _configure_logging(args.verbose)

    from dmarcdesk import create_app
    from dmarcdesk.config import MailboxSettings
    from dmarcdesk.exceptions import AppError, SoftError, exception_text
    from dmarcdesk.reports.fetcher import ReportFetcher
    from dmarcdesk.sources.directory import DirectorySource
    from dmarcdesk.sources.mailbox import MailboxSource

    try:
        flask_app = create_app()
    except Exception:
        logger.exception("FATAL: Failed to create Flask application.")
        return 1

    debug = bool(flask_app.config.get("DEBUG"))
    with flask_app.app_context():
        try:
            if args.source == "directory":
                source = DirectorySource(args.path)
            else:
                settings = MailboxSettings.from_mapping(flask_app.config)
                if not settings.host:
                    raise SoftError("The mailbox is not configured (MAILBOX_HOST)")
                source = MailboxSource(settings)
            with source:
                results = ReportFetcher(source).fetch()
        except SoftError as exc:
            print(f"Error: {exc.message}")
            return 1
        except AppError as exc:
            print(exception_text(exc, debug), end="")
            return 1
        except Exception as exc:
            logger.exception("Report fetch failed: source=%s", args.source)
            print(exception_text(exc, debug), end="")
            return 1

    rejected = [r for r in results if not r.success]
    for result in rejected:
        print(f"Error: {result.filename}: {result.message}")
    logger.info(
        "=== Fetch complete: source=%s accepted=%d rejected=%d ===",
        args.source,
        len(results) - len(rejected),
        len(rejected),
    )
    return 1 if rejected else 0


if __name__ == "__main__":
    sys.exit(main())
