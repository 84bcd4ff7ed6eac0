"""
Error taxonomy surfaced to clients, plus the lower level errors the
services raise before the façade translates them.
"""


class AuthError(Exception):
    """Base class for errors with a client-safe message and HTTP status."""

    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AuthError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(AuthError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(AuthError):
    status_code = 403
    default_message = "Forbidden"


class Conflict(AuthError):
    status_code = 409
    default_message = "Conflict"


class Internal(AuthError):
    status_code = 500


class ProviderError(Exception):
    """An identity provider call failed.

    ``code`` is one of the provider-neutral codes below; the façade maps
    them to the client taxonomy per operation.
    """

    EMAIL_ALREADY_EXISTS = "email-already-exists"
    INVALID_EMAIL = "invalid-email"
    WEAK_PASSWORD = "weak-password"
    USER_NOT_FOUND = "user-not-found"
    WRONG_PASSWORD = "wrong-password"
    USER_DISABLED = "user-disabled"
    INVALID_TOKEN = "invalid-token"
    TOKEN_EXCHANGE_FAILED = "token-exchange-failed"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}")


class EmailDispatchError(Exception):
    """The email dispatcher could not hand a message to the mail server."""


class ActionTokenError(Exception):
    """Base class for action token verification failures."""


class MalformedToken(ActionTokenError):
    """The token could not be decoded or carries no email claim."""


class KeyNotFound(ActionTokenError):
    """No live signing key for the token's (action type, email)."""


class TokenExpired(ActionTokenError):
    """The token's exp claim is in the past."""


class SignatureInvalid(ActionTokenError):
    """The token does not verify against the live signing key."""
