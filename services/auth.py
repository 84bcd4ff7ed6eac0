"""
Auth façade: the operation set consumed by the HTTP layer.

Provider error codes are translated into the client taxonomy here, one
operation at a time. Operations that could reveal whether an account exists
answer the same way either way and keep the real outcome in the logs.
"""
from __future__ import annotations

import logging
from typing import Optional

from services.action_tokens import ActionTokenService, ActionType
from services.exceptions import (
    ActionTokenError,
    Conflict,
    EmailDispatchError,
    Forbidden,
    Internal,
    InvalidInput,
    ProviderError,
    Unauthorized,
)
from services.identity_provider import IdentityProvider, SessionTokenPair
from services.session_tokens import SessionTokenManager
from utils.validators import password_error_message, validate_email, validate_password

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If your email is registered, you will receive a password reset link."
RESEND_VERIFICATION_MESSAGE = "If your email is registered and not verified, a verification email will be sent."
INVALID_VERIFICATION_TOKEN = "Invalid or expired verification token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"
INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
ACCOUNT_DISABLED = "Account has been disabled"

REGISTRATION_ERRORS = {
    ProviderError.EMAIL_ALREADY_EXISTS: (Conflict, "Email already in use"),
    ProviderError.INVALID_EMAIL: (InvalidInput, "Invalid email format"),
    ProviderError.WEAK_PASSWORD: (InvalidInput, "Password is too weak"),
}

LOGIN_ERRORS = {
    ProviderError.USER_DISABLED: (Forbidden, ACCOUNT_DISABLED),
    ProviderError.USER_NOT_FOUND: (Unauthorized, INVALID_CREDENTIALS),
    ProviderError.WRONG_PASSWORD: (Unauthorized, INVALID_CREDENTIALS),
}


def _translate(exc: ProviderError, table, default):
    error_cls, message = table.get(exc.code, default)
    return error_cls(message)


def _check_email(email: Optional[str]) -> None:
    result = validate_email(email)
    if not result.is_valid:
        raise InvalidInput(result.error)


def _check_password(password: Optional[str]) -> None:
    result = validate_password(password)
    if not result.is_valid:
        raise InvalidInput(password_error_message(result.errors))


class AuthFacade:
    """Composes the validator, the session token manager and action tokens."""

    def __init__(self, provider: IdentityProvider, action_tokens: ActionTokenService) -> None:
        self.provider = provider
        self.action_tokens = action_tokens
        self.sessions = SessionTokenManager(provider, action_tokens)

    def register(self, email: str, password: str) -> SessionTokenPair:
        _check_email(email)
        _check_password(password)
        try:
            return self.sessions.register(email, password)
        except ProviderError as exc:
            logger.error("Registration failed for %s: %s", email, exc)
            raise _translate(exc, REGISTRATION_ERRORS, (InvalidInput, "Invalid registration data")) from exc

    def login(self, email: str, password: str, want_refresh_token: bool = False) -> SessionTokenPair:
        _check_email(email)
        if not password:
            raise InvalidInput("Password is required")
        try:
            pair = self.sessions.authenticate(email, password, want_refresh_token)
        except ProviderError as exc:
            logger.warning("Login failed for %s: %s", email, exc.code)
            raise _translate(exc, LOGIN_ERRORS, (InvalidInput, "Invalid login attempt")) from exc
        if pair is None:
            raise Unauthorized(INVALID_CREDENTIALS)
        return pair

    def forgot_password(self, email: str) -> str:
        """Send a reset link when the account exists; always return the same message."""
        _check_email(email)
        try:
            user = self.provider.get_user_by_email(email)
            self.action_tokens.issue(ActionType.RESET_PASSWORD, email, user.uid)
        except ProviderError as exc:
            if exc.code == ProviderError.USER_NOT_FOUND:
                logger.info("Password reset requested for unknown email %s", email)
            else:
                logger.error("Password reset for %s failed: %s", email, exc)
        except EmailDispatchError:
            logger.exception("Password reset email for %s was not sent", email)
        return FORGOT_PASSWORD_MESSAGE

    def resend_verification(self, access_token: Optional[str]) -> str:
        """
        Send a new verification link to the holder of ``access_token``.

        Only a missing or invalid token (or one without an email) is an
        error. Unknown and already verified accounts, as well as dispatch
        failures, get the generic message; the real outcome is logged.
        """
        if not access_token:
            raise InvalidInput("Access token is required")
        try:
            claims = self.provider.verify_id_token(access_token)
        except ProviderError as exc:
            if exc.code not in (ProviderError.INVALID_TOKEN, ProviderError.USER_DISABLED):
                logger.error("Access token check for resend verification failed: %s", exc)
                raise Internal("Verification email could not be sent") from exc
            logger.info("Resend verification with bad access token: %s", exc.code)
            raise InvalidInput("Invalid or expired access token") from exc
        email = claims.get("email")
        if not email:
            raise InvalidInput("Email not found in token")
        try:
            user = self.provider.get_user_by_email(email)
            if user.email_verified:
                logger.info("Resend verification for already verified %s", email)
            else:
                self.action_tokens.issue(ActionType.VERIFY_EMAIL, email, user.uid)
        except ProviderError as exc:
            if exc.code == ProviderError.USER_NOT_FOUND:
                logger.info("Resend verification for unknown email %s", email)
            else:
                logger.error("Resend verification lookup for %s failed: %s", email, exc)
        except EmailDispatchError:
            logger.exception("Verification email for %s was not sent", email)
        return RESEND_VERIFICATION_MESSAGE

    def verify_email(self, token: str) -> SessionTokenPair:
        """
        Consume a verification token, mark the account verified and start a
        fresh session; refresh tokens issued before verification are revoked.

        The provider is updated before the token is consumed, so a provider
        failure leaves the link usable for another attempt.
        """
        if not token:
            raise InvalidInput("Verification token is required")
        pair = None

        def finish(verified):
            nonlocal pair
            if not verified.owner_id:
                logger.error("Verification key for %s has no owner", verified.email)
                raise InvalidInput(INVALID_VERIFICATION_TOKEN)
            try:
                self.provider.update_user(verified.owner_id, email_verified=True)
                self.provider.revoke_refresh_tokens(verified.owner_id)
                custom_token = self.provider.create_custom_token(verified.owner_id)
                pair = self.provider.exchange_custom_token(custom_token)
            except ProviderError as exc:
                logger.error("Finishing email verification for %s failed: %s", verified.email, exc)
                raise InvalidInput(
                    "Failed to verify email. Please try again or request a new verification link."
                ) from exc

        try:
            self.action_tokens.verify(ActionType.VERIFY_EMAIL, token, before_consume=finish)
        except ActionTokenError as exc:
            logger.info("Email verification rejected: %s: %s", type(exc).__name__, exc)
            raise InvalidInput(INVALID_VERIFICATION_TOKEN) from exc
        return pair

    def reset_password(self, token: str, password: str) -> None:
        if not token:
            raise InvalidInput("Reset token is required")
        _check_password(password)

        def apply(verified):
            if not verified.owner_id:
                logger.error("Reset key for %s has no owner", verified.email)
                raise InvalidInput(INVALID_RESET_TOKEN)
            try:
                self.provider.update_user(verified.owner_id, password=password)
                self.provider.revoke_refresh_tokens(verified.owner_id)
            except ProviderError as exc:
                logger.error("Password update for %s failed: %s", verified.email, exc)
                if exc.code == ProviderError.WEAK_PASSWORD:
                    raise InvalidInput("Password is too weak") from exc
                raise InvalidInput(INVALID_RESET_TOKEN) from exc

        try:
            verified = self.action_tokens.verify(ActionType.RESET_PASSWORD, token, before_consume=apply)
        except ActionTokenError as exc:
            logger.info("Password reset rejected: %s: %s", type(exc).__name__, exc)
            raise InvalidInput(INVALID_RESET_TOKEN) from exc
        logger.info("Password reset for %s", verified.email)

    def refresh(self, refresh_token: Optional[str]) -> SessionTokenPair:
        if not refresh_token:
            raise Unauthorized("Refresh token is required")
        try:
            pair = self.sessions.refresh(refresh_token)
        except ProviderError as exc:
            raise Forbidden(ACCOUNT_DISABLED) from exc
        if pair is None:
            raise Unauthorized(INVALID_REFRESH_TOKEN)
        return pair

    def logout(self, access_token: Optional[str]) -> bool:
        """Best-effort revocation; never fails the request."""
        if not access_token:
            return False
        try:
            return self.sessions.revoke_all(access_token)
        except ProviderError as exc:
            logger.info("Logout could not revoke tokens: %s", exc.code)
            return False

    def verify_access_token(self, access_token: Optional[str]) -> bool:
        if not access_token:
            raise InvalidInput("Access token is required")
        try:
            return self.sessions.verify(access_token)
        except ProviderError as exc:
            logger.error("Access token verification failed: %s", exc)
            raise Internal("Failed to verify access token") from exc
