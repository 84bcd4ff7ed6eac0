"""
Session Token Manager: orchestrates the session token flows while the
identity provider does the cryptography. Provider codes are passed through
untouched; translating them for clients is the façade's job.
"""
from __future__ import annotations

import logging
from typing import Optional

from services.action_tokens import ActionTokenService, ActionType
from services.exceptions import EmailDispatchError, ProviderError
from services.identity_provider import IdentityProvider, SessionTokenPair

logger = logging.getLogger(__name__)

BAD_CREDENTIAL_CODES = frozenset({ProviderError.USER_NOT_FOUND, ProviderError.WRONG_PASSWORD})


class SessionTokenManager:

    def __init__(self, provider: IdentityProvider, action_tokens: ActionTokenService) -> None:
        self.provider = provider
        self.action_tokens = action_tokens

    def register(self, email: str, password: str) -> SessionTokenPair:
        """
        Create an unverified account, sign it in through a custom token
        and send the email verification link.

        A failed verification email does not fail the registration; the
        user can ask for another link later.
        """
        uid = self.provider.create_user(email, password, email_verified=False)
        custom_token = self.provider.create_custom_token(uid)
        pair = self.provider.exchange_custom_token(custom_token)
        try:
            self.action_tokens.issue(ActionType.VERIFY_EMAIL, email, uid)
        except EmailDispatchError:
            logger.exception("Verification email for new account %s was not sent", uid)
        logger.info("Registered account %s", uid)
        return pair

    def authenticate(self, email: str, password: str,
                     want_refresh_token: bool = False) -> Optional[SessionTokenPair]:
        """
        Password grant. Wrong credentials return None; a disabled account or
        an unreachable provider raises ProviderError.
        """
        try:
            pair = self.provider.sign_in_with_password(email, password)
        except ProviderError as exc:
            if exc.code in BAD_CREDENTIAL_CODES:
                return None
            raise
        return pair if want_refresh_token else pair.without_refresh_token()

    def refresh(self, refresh_token: str) -> Optional[SessionTokenPair]:
        """
        Refresh grant. Any token failure returns None so callers cannot tell
        expired from revoked from malformed. Disabled accounts still raise.
        """
        if not refresh_token:
            return None
        try:
            return self.provider.refresh(refresh_token)
        except ProviderError as exc:
            if exc.code == ProviderError.USER_DISABLED:
                raise
            logger.info("Refresh rejected: %s", exc.code)
            return None

    def revoke_all(self, access_token: str) -> bool:
        """Revoke every refresh token of the access token's subject."""
        claims = self.provider.verify_id_token(access_token)
        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            return False
        self.provider.revoke_refresh_tokens(uid)
        logger.info("Revoked refresh tokens for %s", uid)
        return True

    def verify(self, access_token: str) -> bool:
        try:
            self.provider.verify_id_token(access_token)
        except ProviderError as exc:
            if exc.code in (ProviderError.INVALID_TOKEN, ProviderError.USER_DISABLED):
                return False
            raise
        return True
