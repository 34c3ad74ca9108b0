"""
Database initialisation script for DMARC Desk.

Creates all tables and, on SQLite, enables WAL mode so that the web app
can read while the fetch script writes.

Safe to run multiple times (idempotent).

Usage:
    python init_db.py
"""

from __future__ import annotations

import sys

from sqlalchemy import text

from dmarcdesk import create_app, db


def init_database() -> None:
    """Initialise the database within the Flask application context."""
    app = create_app()

    with app.app_context():
        db.create_all()
        print("[init_db] Tables created / verified.")

        if db.engine.dialect.name == "sqlite":
            with db.engine.connect() as conn:
                mode = conn.execute(text("PRAGMA journal_mode=WAL")).scalar()
            print(f"[init_db] SQLite journal_mode = {mode}")

        print("[init_db] Initialisation complete.")


if __name__ == "__main__":
    try:
        init_database()
    except Exception as exc:  # pylint: disable=broad-except
        print(f"[init_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
