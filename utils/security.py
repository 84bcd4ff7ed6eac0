"""
security helpers for action tokens:
- random per-request signing keys via secrets
- JWT signing/verification via PyJWT
- untrusted claim peeking, used only to route a token to its key
"""
from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import jwt

KEY_ALPHABET = string.ascii_letters + string.digits
SIGNING_KEY_LENGTH = 32
DEFAULT_ALGORITHM = "HS256"


def generate_signing_key(length: int = SIGNING_KEY_LENGTH) -> str:
    """Generate a random alphanumeric signing key.
    """
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(length))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def sign_action_token(email: str, key: str, ttl: timedelta,
                      algorithm: str = DEFAULT_ALGORITHM) -> str:
    now = _now()
    payload = {
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, key, algorithm=algorithm)


def peek_claims(token: str) -> Dict[str, Any]:
    """
    Decode a JWT WITHOUT checking its signature or expiry.
    The result is untrusted; only use it to find the verification key.
    Raises jwt.DecodeError when the token is not a JWT at all.
    """
    return jwt.decode(token, options={"verify_signature": False, "verify_exp": False})


def decode_action_token(token: str, key: str,
                        algorithm: str = DEFAULT_ALGORITHM) -> Dict[str, Any]:
    """
    Verify signature and expiry against the stored key.
    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.
    """
    return jwt.decode(token, key, algorithms=[algorithm], options={"require": ["exp", "email"]})
