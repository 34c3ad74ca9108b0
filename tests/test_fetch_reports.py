"""
Tests for the ``fetch_reports.py`` command line script.
"""

from __future__ import annotations

from unittest.mock import patch

from conftest import make_report_xml

import fetch_reports


def test_directory_import(app, tmp_path):
    (tmp_path / "one.xml").write_bytes(make_report_xml(report_id="cli-1"))

    with patch("dmarcdesk.create_app", return_value=app):
        code = fetch_reports.main(["--source", "directory", "--path", str(tmp_path)])

    assert code == 0
    assert not (tmp_path / "one.xml").exists()


def test_directory_import_with_rejects(app, tmp_path, capsys):
    (tmp_path / "junk.xml").write_bytes(b"junk")

    with patch("dmarcdesk.create_app", return_value=app):
        code = fetch_reports.main(["--source", "directory", "--path", str(tmp_path)])

    assert code == 1
    assert "Error: junk.xml: Incorrect or unsupported report format" in capsys.readouterr().out


def test_missing_directory(app, tmp_path, capsys):
    with patch("dmarcdesk.create_app", return_value=app):
        code = fetch_reports.main(["--source", "directory", "--path", str(tmp_path / "gone")])

    assert code == 1
    assert "The directory does not exist" in capsys.readouterr().out


def test_unconfigured_mailbox(app, capsys):
    with patch("dmarcdesk.create_app", return_value=app):
        code = fetch_reports.main(["--source", "mailbox"])

    assert code == 1
    assert "The mailbox is not configured" in capsys.readouterr().out


def test_unexpected_error(app, tmp_path, capsys):
    with patch("dmarcdesk.create_app", return_value=app), \
         patch("dmarcdesk.reports.fetcher.ReportFetcher.fetch", side_effect=RuntimeError("boom")):
        code = fetch_reports.main(["--source", "directory", "--path", str(tmp_path)])

    assert code == 1
    assert "Error: boom" in capsys.readouterr().out
