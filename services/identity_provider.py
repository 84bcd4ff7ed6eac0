"""
Identity provider collaborator.

The gateway never stores credentials; account records, session token
issuance and token verification belong to the provider. Every failure is
raised as :class:`.ProviderError` with a provider-neutral code.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from services.exceptions import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokenPair:
    access_token: str
    refresh_token: Optional[str] = None

    def without_refresh_token(self) -> "SessionTokenPair":
        return SessionTokenPair(self.access_token)

    def to_dict(self) -> Dict[str, str]:
        data = {"idToken": self.access_token}
        if self.refresh_token:
            data["refreshToken"] = self.refresh_token
        return data


@dataclass(frozen=True)
class ProviderUser:
    uid: str
    email: Optional[str]
    email_verified: bool = False
    disabled: bool = False


class IdentityProvider:
    """Operations the gateway needs from the identity provider."""

    def create_user(self, email: str, password: str, email_verified: bool = False) -> str:
        """Create an account and return its uid."""
        raise NotImplementedError

    def get_user_by_email(self, email: str) -> ProviderUser:
        raise NotImplementedError

    def update_user(self, uid: str, **fields: Any) -> None:
        """Update account fields (``email_verified``, ``password``)."""
        raise NotImplementedError

    def create_custom_token(self, uid: str) -> str:
        raise NotImplementedError

    def exchange_custom_token(self, custom_token: str) -> SessionTokenPair:
        raise NotImplementedError

    def sign_in_with_password(self, email: str, password: str) -> SessionTokenPair:
        raise NotImplementedError

    def refresh(self, refresh_token: str) -> SessionTokenPair:
        raise NotImplementedError

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        """Check signature, expiry and issuer; return the token claims."""
        raise NotImplementedError

    def revoke_refresh_tokens(self, uid: str) -> None:
        raise NotImplementedError


# Identity Toolkit REST error strings -> provider codes
REST_ERROR_CODES = (
    ("EMAIL_NOT_FOUND", ProviderError.USER_NOT_FOUND),
    ("INVALID_EMAIL", ProviderError.USER_NOT_FOUND),
    ("INVALID_PASSWORD", ProviderError.WRONG_PASSWORD),
    ("INVALID_LOGIN_CREDENTIALS", ProviderError.WRONG_PASSWORD),
    ("USER_DISABLED", ProviderError.USER_DISABLED),
    ("USER_NOT_FOUND", ProviderError.USER_NOT_FOUND),
    ("TOKEN_EXPIRED", ProviderError.INVALID_TOKEN),
    ("INVALID_REFRESH_TOKEN", ProviderError.INVALID_TOKEN),
    ("INVALID_GRANT_TYPE", ProviderError.INVALID_TOKEN),
    ("MISSING_REFRESH_TOKEN", ProviderError.INVALID_TOKEN),
    ("INVALID_CUSTOM_TOKEN", ProviderError.TOKEN_EXCHANGE_FAILED),
    ("CREDENTIAL_MISMATCH", ProviderError.TOKEN_EXCHANGE_FAILED),
)


def rest_error_code(message: str, default: str = ProviderError.UNKNOWN) -> str:
    for marker, code in REST_ERROR_CODES:
        if marker in message:
            return code
    return default


def admin_error_code(exc: Exception) -> str:
    if isinstance(exc, firebase_auth.EmailAlreadyExistsError):
        return ProviderError.EMAIL_ALREADY_EXISTS
    if isinstance(exc, firebase_auth.UserNotFoundError):
        return ProviderError.USER_NOT_FOUND
    if isinstance(exc, firebase_auth.UserDisabledError):
        return ProviderError.USER_DISABLED
    if isinstance(exc, firebase_auth.CertificateFetchError):
        # public keys unreachable, the token itself was never checked
        return ProviderError.UNAVAILABLE
    if isinstance(exc, firebase_auth.InvalidIdTokenError):
        return ProviderError.INVALID_TOKEN
    if isinstance(exc, ValueError):
        # firebase_admin validates arguments locally and raises ValueError
        text = str(exc).lower()
        if "password" in text:
            return ProviderError.WEAK_PASSWORD
        if "email" in text:
            return ProviderError.INVALID_EMAIL
        if "token" in text:
            return ProviderError.INVALID_TOKEN
    return ProviderError.UNKNOWN


class FirebaseIdentityProvider(IdentityProvider):
    """
    Firebase Authentication.

    Admin operations go through the firebase-admin SDK; the password,
    custom token and refresh grants go through the Identity Toolkit and
    Secure Token REST endpoints with the project's web API key.
    """

    def __init__(self, web_api_key: str, project_id: Optional[str] = None,
                 identity_toolkit_url: str = "https://identitytoolkit.googleapis.com/v1",
                 secure_token_url: str = "https://securetoken.googleapis.com/v1",
                 timeout: float = 10.0, app: Optional[firebase_admin.App] = None) -> None:
        self.web_api_key = web_api_key
        self.identity_toolkit_url = identity_toolkit_url.rstrip("/")
        self.secure_token_url = secure_token_url.rstrip("/")
        self.timeout = timeout
        self._app = app or self._default_app(project_id)
        self._session = requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    @classmethod
    def from_config(cls, config) -> "FirebaseIdentityProvider":
        return cls(
            web_api_key=config["FIREBASE_WEB_API_KEY"],
            project_id=config.get("FIREBASE_PROJECT_ID"),
            identity_toolkit_url=config["IDENTITY_TOOLKIT_URL"],
            secure_token_url=config["SECURE_TOKEN_URL"],
            timeout=config["IDP_TIMEOUT_SECONDS"],
        )

    @staticmethod
    def _default_app(project_id: Optional[str]) -> firebase_admin.App:
        try:
            return firebase_admin.get_app()
        except ValueError:
            options = {"projectId": project_id} if project_id else None
            app = firebase_admin.initialize_app(options=options)
            logger.info("Firebase Admin SDK initialized for project %s", project_id)
            return app

    def _admin_call(self, operation: str, func, *args, **kwargs):
        try:
            return func(*args, app=self._app, **kwargs)
        except (firebase_exceptions.FirebaseError, ValueError) as exc:
            code = admin_error_code(exc)
            logger.warning("Provider %s failed (%s): %s", operation, code, exc)
            raise ProviderError(code, str(exc)) from exc

    def _post(self, operation: str, url: str, payload: Dict[str, Any],
              default_code: str = ProviderError.UNKNOWN) -> Dict[str, Any]:
        if not self.web_api_key:
            raise ProviderError(ProviderError.UNAVAILABLE, "Web API key is required for " + operation)
        try:
            response = self._session.post(
                url, params={"key": self.web_api_key}, data=json.dumps(payload), timeout=self.timeout
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Provider %s request failed: %s", operation, exc)
            raise ProviderError(ProviderError.UNAVAILABLE, str(exc)) from exc
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.ok:
            message = (data.get("error") or {}).get("message") or response.reason or ""
            code = rest_error_code(message, default_code)
            logger.info("Provider %s rejected (%s): %s", operation, code, message)
            raise ProviderError(code, f"{operation} failed: {message}")
        return data

    def create_user(self, email, password, email_verified=False):
        record = self._admin_call(
            "create_user", firebase_auth.create_user,
            email=email, password=password, email_verified=email_verified,
        )
        return record.uid

    def get_user_by_email(self, email):
        record = self._admin_call("get_user_by_email", firebase_auth.get_user_by_email, email)
        return ProviderUser(
            uid=record.uid,
            email=record.email,
            email_verified=bool(record.email_verified),
            disabled=bool(record.disabled),
        )

    def update_user(self, uid, **fields):
        self._admin_call("update_user", firebase_auth.update_user, uid, **fields)

    def create_custom_token(self, uid):
        token = self._admin_call("create_custom_token", firebase_auth.create_custom_token, uid)
        return token.decode("utf-8") if isinstance(token, bytes) else token

    def exchange_custom_token(self, custom_token):
        data = self._post(
            "custom token exchange",
            f"{self.identity_toolkit_url}/accounts:signInWithCustomToken",
            {"token": custom_token, "returnSecureToken": True},
            default_code=ProviderError.TOKEN_EXCHANGE_FAILED,
        )
        return SessionTokenPair(data["idToken"], data.get("refreshToken"))

    def sign_in_with_password(self, email, password):
        data = self._post(
            "password sign-in",
            f"{self.identity_toolkit_url}/accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return SessionTokenPair(data["idToken"], data.get("refreshToken"))

    def refresh(self, refresh_token):
        data = self._post(
            "token refresh",
            f"{self.secure_token_url}/token",
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            default_code=ProviderError.INVALID_TOKEN,
        )
        return SessionTokenPair(data["id_token"], data.get("refresh_token"))

    def verify_id_token(self, id_token):
        return self._admin_call("verify_id_token", firebase_auth.verify_id_token, id_token)

    def revoke_refresh_tokens(self, uid):
        self._admin_call("revoke_refresh_tokens", firebase_auth.revoke_refresh_tokens, uid)
