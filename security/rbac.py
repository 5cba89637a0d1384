from functools import wraps
from flask import g

from services.errors import AuthError, ForbiddenError


def current_actor():
    """The authenticated user for this request, or AuthError."""
    user = getattr(g, "user", None)
    if user is None:
        raise AuthError("Authentication required")
    return user


def require_roles(*role_names: str):
    """
    @require_roles("admin") / @require_roles("user")

    Evaluated once per request against the actor's single role claim.
    """
    allowed = frozenset(role_names)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_actor().role not in allowed:
                raise ForbiddenError("Forbidden")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
