from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from utils.exceptions import NotAuthenticated

BEARER_PREFIX = "bearer "


def get_auth_service():
    """The SessionAuthService wired by create_app()."""
    return current_app.extensions["session_auth"]


def bearer_token_from_request() -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.lower().startswith(BEARER_PREFIX):
        return None
    return auth[len(BEARER_PREFIX):].strip() or None


def bearer_required():
    """
    Require `Authorization: Bearer <access token>`.
    The authenticated user is attached to g.current_user.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token_from_request()
            if not token:
                raise NotAuthenticated()
            # AuthError subclasses are rendered by api.errors
            g.current_user = get_auth_service().verify_bearer(token)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
