"""
Level-based access control.

Provides the single policy used for every "may this user act on that
user" decision, plus decorators that guard JSON routes:
  @level_required(UserLevel.ADMIN)   - at least the given level
  @level_required()                  - any authenticated user
"""

from __future__ import annotations

from functools import wraps
from typing import Callable

from flask_login import current_user

from dmarcdesk.exceptions import AuthenticationError, ForbiddenError, SoftError
from dmarcdesk.models import User, UserLevel


def ensure_allowed(user, level: UserLevel = UserLevel.USER) -> None:
    """Raise unless *user* is logged in and has at least *level*."""
    if user is None or not user.is_authenticated:
        raise AuthenticationError("Authentication needed")
    if user.level < level:
        raise ForbiddenError("Forbidden")


def outranks(actor: User, target_level: int) -> bool:
    """Return True if *actor* has a strictly higher level than *target_level*."""
    return actor.level > int(target_level)


def ensure_outranks(actor: User, target_level: int, action: str) -> None:
    """Raise a user-facing error unless *actor* outranks *target_level*."""
    if not outranks(actor, target_level):
        raise SoftError(f"Insufficient access level to {action} this user")


def level_required(level: UserLevel = UserLevel.USER) -> Callable:
    """Restrict a JSON route to users with at least *level*.

    Unauthenticated callers get a 401 JSON error instead of the login
    redirect; authenticated callers below *level* get a 403 JSON error.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_view(*args, **kwargs):
            ensure_allowed(current_user, level)
            return f(*args, **kwargs)
        return decorated_view
    return decorator
