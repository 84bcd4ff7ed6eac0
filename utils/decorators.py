from __future__ import annotations
from functools import wraps
from flask import request, g, abort


def bearer_token() -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header, if any."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def bearer_token_required(status: int = 400):
    """
    Put the request's bearer token on ``g.access_token``.
    Abort with ``status`` when the header is missing or empty. The token is
    not verified here; the identity provider does that downstream.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            if token is None:
                abort(status, description="Missing or invalid Authorization header")
            g.access_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator
