"""
Admin user creation script for DMARC Desk.

Creates a new user with the ``admin`` level.  Credentials may be supplied
via command-line flags or entered interactively when flags are omitted.

Usage:
    python create_admin.py --name admin --password s3cr3tP@ss
    python create_admin.py          # prompts interactively
"""

from __future__ import annotations

import argparse
import getpass
import sys

from dmarcdesk import create_app, db
from dmarcdesk.models import User, UserLevel


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create an admin user for DMARC Desk."
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Name of the new admin account (prompted if omitted).",
    )
    parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Password of the new admin account (prompted if omitted).",
    )
    parser.add_argument(
        "--email",
        type=str,
        default=None,
        help="Optional email address of the new admin account.",
    )
    return parser.parse_args()


# ---------------------------------------------------------------------------
# Interactive prompts
# ---------------------------------------------------------------------------


def prompt_name() -> str:
    """Prompt for and return a non-empty user name."""
    while True:
        name = input("Name: ").strip()
        if name:
            return name
        print("Name must not be empty. Please try again.")


def prompt_password() -> str:
    """Prompt for a password (with confirmation) that is >= 8 characters."""
    while True:
        password = getpass.getpass("Password: ")
        if len(password) < 8:
            print("Password must be at least 8 characters. Please try again.")
            continue
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Please try again.")
            continue
        return password


# ---------------------------------------------------------------------------
# Main logic
# ---------------------------------------------------------------------------


def create_admin(name: str, password: str, email: str | None) -> None:
    """Create the admin user inside the Flask application context."""
    if len(password) < 8:
        print("ERROR: Password must be at least 8 characters.", file=sys.stderr)
        sys.exit(1)

    app = create_app()

    with app.app_context():
        existing: User | None = (
            db.session.execute(db.select(User).where(User.name == name))
            .scalars()
            .first()
        )
        if existing is not None:
            print(f"ERROR: A user named '{name}' already exists.", file=sys.stderr)
            sys.exit(1)

        user = User(name=name, level=int(UserLevel.ADMIN), enabled=True, email=email or None)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()

        print(f"Admin user '{name}' created successfully (id={user.id}).")


def main() -> None:
    args = parse_args()

    interactive = sys.stdin.isatty()

    name: str = args.name if args.name else (prompt_name() if interactive else _bail("--name"))
    password: str = args.password if args.password else (prompt_password() if interactive else _bail("--password"))

    create_admin(name, password, args.email)


def _bail(flag: str) -> str:
    """Exit with error when a required flag is missing in non-interactive mode."""
    print(f"ERROR: {flag} is required in non-interactive mode.", file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()
