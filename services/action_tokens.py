"""
Action Token Issuer/Verifier.

Each (action type, email) moves through NoKey -> KeyIssued -> Consumed and
re-enters KeyIssued whenever a new token is issued. Tokens are signed with a
random key stored per email, so a token only verifies while its key is the
live one: re-issuing or consuming makes every earlier token useless, even
before it expires.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import jwt

from services.email import EmailDispatcher, password_reset_message, verification_message
from services.exceptions import KeyNotFound, MalformedToken, SignatureInvalid, TokenExpired
from services.key_store import ActionKeyStore
from utils.security import (
    DEFAULT_ALGORITHM,
    decode_action_token,
    generate_signing_key,
    peek_claims,
    sign_action_token,
)

logger = logging.getLogger(__name__)


class ActionType(str, enum.Enum):
    VERIFY_EMAIL = "verify-email"
    RESET_PASSWORD = "reset-password"


DEFAULT_TTLS = {
    ActionType.VERIFY_EMAIL: timedelta(hours=24),
    ActionType.RESET_PASSWORD: timedelta(hours=1),
}

MESSAGE_BUILDERS = {
    ActionType.VERIFY_EMAIL: verification_message,
    ActionType.RESET_PASSWORD: password_reset_message,
}


@dataclass(frozen=True)
class IssuedActionToken:
    token: str
    url: str
    expires_at: datetime


@dataclass(frozen=True)
class VerifiedAction:
    email: str
    owner_id: Optional[str]
    claims: Dict[str, Any] = field(default_factory=dict)


class ActionTokenService:
    """Mints and consumes single-use action tokens."""

    def __init__(self, store: ActionKeyStore, dispatcher: EmailDispatcher,
                 base_url: str, ttls: Optional[Dict[ActionType, timedelta]] = None,
                 algorithm: str = DEFAULT_ALGORITHM) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.base_url = base_url.rstrip("/")
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.algorithm = algorithm

    def action_url(self, action_type: ActionType, token: str) -> str:
        return f"{self.base_url}/{action_type.value}?{urlencode({'token': token})}"

    def issue(self, action_type: ActionType, email: str, owner_id: Optional[str],
              ttl: Optional[timedelta] = None) -> IssuedActionToken:
        """
        Store a fresh signing key for (action_type, email), sign a token with
        it and email the action link.

        The key is written before the email goes out because the link only
        works against the stored key. A previously issued token for the same
        email stops verifying once this call has stored its key.
        """
        action_type = ActionType(action_type)
        ttl = ttl if ttl is not None else self.ttls[action_type]
        key = generate_signing_key()
        expires_at = datetime.now(timezone.utc) + ttl

        self.store.put(action_type.value, email, key, owner_id, expires_at=expires_at)
        token = sign_action_token(email, key, ttl, algorithm=self.algorithm)
        url = self.action_url(action_type, token)

        subject, body = MESSAGE_BUILDERS[action_type](url, ttl)
        self.dispatcher.send(email, subject, body)
        logger.info("Issued %s token for %s", action_type.value, email)
        return IssuedActionToken(token=token, url=url, expires_at=expires_at)

    def verify(self, action_type: ActionType, token: str,
               before_consume: Optional[Callable[[VerifiedAction], None]] = None) -> VerifiedAction:
        """
        Verify and consume an action token.

        The email claim is read without checking the signature first, only
        to find the signing key; the claims returned come from the checked
        decode. On success the key is deleted, so a second call with the
        same token raises KeyNotFound.

        ``before_consume`` runs with the verified action before the key is
        deleted. If it raises, the key stays and the token can be used again.
        """
        action_type = ActionType(action_type)
        try:
            untrusted = peek_claims(token)
        except jwt.InvalidTokenError as exc:
            raise MalformedToken(f"Token could not be decoded: {exc}") from exc
        email = untrusted.get("email")
        if not email or not isinstance(email, str):
            raise MalformedToken("Token carries no email claim")

        record = self.store.get(action_type.value, email)
        if record is None:
            raise KeyNotFound(f"No {action_type.value} key for {email}")

        try:
            claims = decode_action_token(token, record.signing_key, algorithm=self.algorithm)
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired(f"{action_type.value} token for {email} expired") from exc
        except jwt.InvalidTokenError as exc:
            raise SignatureInvalid(f"{action_type.value} token for {email} failed verification: {exc}") from exc
        if claims.get("email") != email:
            raise SignatureInvalid(f"{action_type.value} token email mismatch")

        verified = VerifiedAction(email=email, owner_id=record.owner_id, claims=claims)
        if before_consume is not None:
            before_consume(verified)
        self.store.delete(action_type.value, email)
        logger.info("Consumed %s token for %s", action_type.value, email)
        return verified
