"""
Summary report mailer for DMARC Desk.

Builds a text and/or HTML digest of the DMARC reports received for one or
more domains over a period and mails it.  Meant to be run from cron.

USAGE
=====
  python summary_report.py domain=<domains> period=<period> [emailto=<address>] [format=<format>]

  domain   Comma-separated list of domains, or "all".
  period   "lastmonth", "lastweek" or "lastndays:N".
  emailto  Recipient; defaults to MAILER_DEFAULT.
  format   "text" (default), "html" or "text+html".

EXAMPLES
========
  # Monthly digest of every domain
  python summary_report.py domain=all period=lastmonth

  # Last 10 days of two domains, as HTML with a text alternative
  python summary_report.py domain=example.com,example.org period=lastndays:10 format=text+html

EXIT CODES
==========
  0 - The report has been sent
  1 - Bad parameters, unknown domain, or the mail could not be delivered
"""

from __future__ import annotations

import argparse
import logging
import sys

_PARAMETERS = ("domain", "period", "emailto", "format")


# ---------------------------------------------------------------------------
# Argument parsing (done before app import so --help works without Flask)
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> tuple[dict[str, str], bool]:
    """Parse ``key=value`` parameters.

    Returns:
        The recognised parameters and the verbose flag.
    """
    parser = argparse.ArgumentParser(
        description="Mail a DMARC summary report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "params",
        nargs="*",
        metavar="key=value",
        help="domain=..., period=..., emailto=..., format=...",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Enable DEBUG-level logging output.",
    )
    args = parser.parse_args(argv)

    params: dict[str, str] = {}
    for item in args.params:
        key, sep, value = item.partition("=")
        if sep and key in _PARAMETERS:
            params[key] = value
    return params, args.verbose


def _configure_logging(verbose: bool) -> logging.Logger:
    """Configure root logger for the script.

    Args:
        verbose: If True, set level to DEBUG; otherwise WARNING so that
            cron only mails real problems.

    Returns:
        A logger instance named after this module.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    return logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Build and send the summary report.

    Returns:
        Integer exit code: 0 for success, 1 for any handled failure.
    """
    params, verbose = _parse_args(argv)
    logger = _configure_logging(verbose)

    from dmarcdesk import create_app
    from dmarcdesk.config import MailerConfig
    from dmarcdesk.exceptions import AppError, SoftError, exception_text
    from dmarcdesk.mail import MailDispatcher
    from dmarcdesk.reports.mailing import send_summary

    try:
        flask_app = create_app()
    except Exception:
        logger.exception("FATAL: Failed to create Flask application.")
        return 1

    debug = bool(flask_app.config.get("DEBUG"))
    with flask_app.app_context():
        dispatcher = MailDispatcher(MailerConfig.from_mapping(flask_app.config))
        try:
            message = send_summary(
                dispatcher,
                params.get("domain", ""),
                params.get("period", ""),
                emailto=params.get("emailto"),
                fmt=params.get("format", "text"),
            )
        except SoftError as exc:
            print(f"Error: {exc.message}")
            return 1
        except AppError as exc:
            print(exception_text(exc, debug), end="")
            return 1
        except Exception as exc:
            logger.exception("Summary report failed")
            print(exception_text(exc, debug), end="")
            return 1

    logger.info("Summary report sent: subject=%r", message.subject)
    return 0


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
