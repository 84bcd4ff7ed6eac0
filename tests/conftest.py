"""Shared fixtures: an app wired to fake collaborators and an in-memory key store."""
from datetime import timedelta

import pytest

from api import create_app
from models import DBStorage
from services.action_tokens import ActionTokenService
from services.email import EmailDispatcher
from services.exceptions import EmailDispatchError, ProviderError
from services.identity_provider import IdentityProvider, ProviderUser, SessionTokenPair
from services.key_store import SQLActionKeyStore


class FakeIdentityProvider(IdentityProvider):
    """In-memory stand-in for the identity provider.

    ``users`` maps email -> dict(uid, password, email_verified, disabled).
    Access tokens look like ``access-<uid>-<n>``, refresh tokens
    ``refresh-<uid>-<n>``; revoking bumps the subject's generation so older
    refresh tokens stop working.
    """

    def __init__(self):
        self.users = {}
        self.generation = {}
        self.calls = []
        self.fail_with = {}
        self._counter = 0

    def _fail(self, operation):
        self.calls.append(operation)
        code = self.fail_with.get(operation)
        if code:
            raise ProviderError(code, f"{operation} failed")

    def _by_uid(self, uid):
        for email, user in self.users.items():
            if user["uid"] == uid:
                return email, user
        raise ProviderError(ProviderError.USER_NOT_FOUND, uid)

    def _pair(self, uid):
        self._counter += 1
        gen = self.generation.get(uid, 0)
        return SessionTokenPair(f"access-{uid}-{self._counter}", f"refresh-{uid}-{gen}-{self._counter}")

    def add_user(self, email, password="Secret123!", email_verified=False, disabled=False):
        uid = f"uid-{len(self.users) + 1}"
        self.users[email] = {
            "uid": uid,
            "password": password,
            "email_verified": email_verified,
            "disabled": disabled,
        }
        return uid

    def create_user(self, email, password, email_verified=False):
        self._fail("create_user")
        if email in self.users:
            raise ProviderError(ProviderError.EMAIL_ALREADY_EXISTS, email)
        return self.add_user(email, password, email_verified)

    def get_user_by_email(self, email):
        self._fail("get_user_by_email")
        user = self.users.get(email)
        if user is None:
            raise ProviderError(ProviderError.USER_NOT_FOUND, email)
        return ProviderUser(user["uid"], email, user["email_verified"], user["disabled"])

    def update_user(self, uid, **fields):
        self._fail("update_user")
        _, user = self._by_uid(uid)
        user.update(fields)

    def create_custom_token(self, uid):
        self._fail("create_custom_token")
        return f"custom-{uid}"

    def exchange_custom_token(self, custom_token):
        self._fail("exchange_custom_token")
        return self._pair(custom_token[len("custom-"):])

    def sign_in_with_password(self, email, password):
        self._fail("sign_in_with_password")
        user = self.users.get(email)
        if user is None:
            raise ProviderError(ProviderError.USER_NOT_FOUND, email)
        if user["password"] != password:
            raise ProviderError(ProviderError.WRONG_PASSWORD, email)
        if user["disabled"]:
            raise ProviderError(ProviderError.USER_DISABLED, email)
        return self._pair(user["uid"])

    def refresh(self, refresh_token):
        self._fail("refresh")
        parts = refresh_token.split("-")
        if len(parts) != 5 or parts[0] != "refresh":
            raise ProviderError(ProviderError.INVALID_TOKEN, "malformed")
        uid = f"{parts[1]}-{parts[2]}"
        if int(parts[3]) != self.generation.get(uid, 0):
            raise ProviderError(ProviderError.INVALID_TOKEN, "revoked")
        _, user = self._by_uid(uid)
        if user["disabled"]:
            raise ProviderError(ProviderError.USER_DISABLED, uid)
        return self._pair(uid)

    def verify_id_token(self, id_token):
        self._fail("verify_id_token")
        parts = id_token.split("-")
        if len(parts) != 4 or parts[0] != "access":
            raise ProviderError(ProviderError.INVALID_TOKEN, "bad token")
        uid = f"{parts[1]}-{parts[2]}"
        email, _ = self._by_uid(uid)
        return {"uid": uid, "sub": uid, "email": email}

    def revoke_refresh_tokens(self, uid):
        self._fail("revoke_refresh_tokens")
        self.generation[uid] = self.generation.get(uid, 0) + 1


class RecordingEmailDispatcher(EmailDispatcher):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, body):
        if self.fail:
            raise EmailDispatchError("smtp down")
        self.sent.append({"to": to, "subject": subject, "body": body})

    def last_token(self):
        """Pull the token out of the most recent action link."""
        body = self.sent[-1]["body"]
        link = next(line for line in body.splitlines() if "token=" in line)
        return link.split("token=", 1)[1].strip()


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def dispatcher():
    return RecordingEmailDispatcher()


@pytest.fixture
def storage():
    db = DBStorage("sqlite://")
    db.reload()
    yield db
    db.close()


@pytest.fixture
def key_store(storage):
    return SQLActionKeyStore(storage)


@pytest.fixture
def action_tokens(key_store, dispatcher):
    return ActionTokenService(
        key_store,
        dispatcher,
        base_url="https://app.example.com/auth",
        ttls={},
    )


@pytest.fixture
def app(provider, key_store, dispatcher):
    app = create_app(
        "testing",
        identity_provider=provider,
        key_store=key_store,
        email_dispatcher=dispatcher,
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def expired():
    return timedelta(seconds=-30)
