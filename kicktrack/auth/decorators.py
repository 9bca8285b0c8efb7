"""Decorators for the auth package."""

from functools import wraps

from flask import session

from kicktrack.core.responses import error_response


def login_required(f=None):
    """Reject the request with a 401 if the user is not logged in.

    Usage:
    @login_required
    def protected_view():
        ...
    """

    def decorator(func):
        @wraps(func)
        def decorated_function(*args, **kwargs):
            if "user_id" not in session:
                return error_response("Authentication required.", 401)
            return func(*args, **kwargs)

        return decorated_function

    if f:
        return decorator(f)
    return decorator


def current_user_id():
    """Return the ID of the logged-in user."""
    return session["user_id"]
