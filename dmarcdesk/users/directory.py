"""
User directory: the persistence side of user management.

Every mutating method takes the acting user explicitly and applies the
level policy from :mod:`dmarcdesk.utils.auth` before touching the
database.
"""

from __future__ import annotations

import logging

from dmarcdesk import db
from dmarcdesk.exceptions import ForbiddenError, NotFoundError, SoftError
from dmarcdesk.models import User, UserLevel
from dmarcdesk.utils.auth import ensure_allowed, ensure_outranks, outranks

logger = logging.getLogger(__name__)

_MAX_NAME_LENGTH = 64


def _check_name(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        raise SoftError("User name must not be empty")
    name = name.strip()
    if len(name) > _MAX_NAME_LENGTH:
        raise SoftError("User name is too long")
    return name


def _parse_level(value: object, default: UserLevel) -> UserLevel:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return UserLevel.from_string(value)
    try:
        return UserLevel(int(value))
    except (TypeError, ValueError):
        raise SoftError(f"Unknown user level: {value}") from None


def _parse_enabled(value: object) -> bool:
    if not isinstance(value, bool):
        raise SoftError("The enabled flag must be true or false")
    return value


class UserDirectory:
    """CRUD access to user accounts on behalf of an acting user."""

    def __init__(self, actor: User) -> None:
        self.actor = actor

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find(self, name: str) -> User | None:
        return db.session.execute(
            db.select(User).where(User.name == name)
        ).scalars().first()

    def get(self, name: str) -> User:
        user = self.find(name)
        if user is None:
            raise NotFoundError("The user does not exist")
        return user

    def exists(self, name: str) -> bool:
        return self.find(name) is not None

    def list(self) -> list[User]:
        return list(
            db.session.execute(db.select(User).order_by(User.name)).scalars().all()
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, name: object, level: object = None, enabled: object = None,
            email: object = None) -> User:
        """Create a user; the actor must outrank the new user's level."""
        ensure_allowed(self.actor, UserLevel.ADMIN)
        name = _check_name(name)
        new_level = _parse_level(level, UserLevel.USER)
        ensure_outranks(self.actor, new_level, "add")
        if self.exists(name):
            raise SoftError("The user already exists")

        user = User(
            name=name,
            level=int(new_level),
            enabled=True if enabled is None else _parse_enabled(enabled),
            email=email or None,
        )
        db.session.add(user)
        db.session.commit()
        logger.info("User added: name=%r level=%s by=%r", name, new_level.to_string(), self.actor.name)
        return user

    def update(self, name: object, level: object = None, enabled: object = None,
               email: object = None) -> User:
        """Update level, enabled flag or email of an existing user."""
        ensure_allowed(self.actor, UserLevel.ADMIN)
        name = _check_name(name)
        user = self.find(name)
        if user is None:
            ensure_outranks(self.actor, _parse_level(level, UserLevel.USER), "update")
            raise SoftError("The user does not exist")

        new_level = _parse_level(level, user.user_level)
        ensure_outranks(self.actor, max(user.level, int(new_level)), "update")
        new_enabled = None if enabled is None else _parse_enabled(enabled)

        user.level = int(new_level)
        if new_enabled is not None:
            user.enabled = new_enabled
        if email is not None:
            user.email = email or None
        db.session.commit()
        logger.info("User updated: name=%r level=%s by=%r", name, new_level.to_string(), self.actor.name)
        return user

    def delete(self, name: object) -> None:
        """Remove a user; a missing user is not an error."""
        ensure_allowed(self.actor, UserLevel.ADMIN)
        name = _check_name(name)
        user = self.find(name)
        target_level = user.level if user is not None else int(UserLevel.USER)
        ensure_outranks(self.actor, target_level, "delete")
        if user is not None:
            db.session.delete(user)
            db.session.commit()
            logger.info("User deleted: name=%r by=%r", name, self.actor.name)

    def set_password(self, name: object, new_password: object,
                     current_password: object = None) -> None:
        """Change a password.

        The actor may change their own password after verifying the
        current one, or the password of a user they strictly outrank
        when they are an admin.
        """
        ensure_allowed(self.actor, UserLevel.USER)
        name = _check_name(name)
        if name == self.actor.name:
            user = self.actor
            if not user.check_password(current_password if isinstance(current_password, str) else ""):
                raise SoftError("The current password is incorrect")
        else:
            ensure_allowed(self.actor, UserLevel.ADMIN)
            user = self.get(name)
            if not outranks(self.actor, user.level):
                raise ForbiddenError("Forbidden")

        if not new_password or not isinstance(new_password, str):
            raise SoftError("New password must not be empty")

        user.set_password(new_password)
        db.session.commit()
        logger.info("Password changed: name=%r by=%r", name, self.actor.name)
