from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import jwt
import pytest

from services.action_tokens import ActionType
from services.exceptions import KeyNotFound, MalformedToken, SignatureInvalid, TokenExpired
from utils.security import sign_action_token

EMAIL = "user@example.com"


def test_issue_stores_key_and_sends_link(action_tokens, key_store, dispatcher):
    issued = action_tokens.issue(ActionType.VERIFY_EMAIL, EMAIL, "uid-1")

    record = key_store.get("verify-email", EMAIL)
    assert record is not None
    assert record.owner_id == "uid-1"
    assert len(record.signing_key) >= 16
    assert record.signing_key.isalnum()

    url = urlparse(issued.url)
    assert url.path == "/auth/verify-email"
    assert parse_qs(url.query)["token"] == [issued.token]

    assert len(dispatcher.sent) == 1
    assert dispatcher.sent[0]["to"] == EMAIL
    assert issued.url in dispatcher.sent[0]["body"]


@pytest.mark.parametrize("action_type, ttl", [
    (ActionType.VERIFY_EMAIL, timedelta(hours=24)),
    (ActionType.RESET_PASSWORD, timedelta(hours=1)),
])
def test_default_expiry_per_action(action_tokens, key_store, action_type, ttl):
    issued = action_tokens.issue(action_type, EMAIL, "uid-1")
    claims = jwt.decode(issued.token, options={"verify_signature": False})
    assert claims["email"] == EMAIL
    assert claims["exp"] - claims["iat"] == int(ttl.total_seconds())
    assert key_store.get(action_type.value, EMAIL).expires_at is not None


def test_verify_succeeds_exactly_once(action_tokens, key_store):
    issued = action_tokens.issue(ActionType.VERIFY_EMAIL, EMAIL, "uid-1")

    verified = action_tokens.verify(ActionType.VERIFY_EMAIL, issued.token)
    assert verified.email == EMAIL
    assert verified.owner_id == "uid-1"
    assert verified.claims["email"] == EMAIL
    assert key_store.get("verify-email", EMAIL) is None

    with pytest.raises(KeyNotFound):
        action_tokens.verify(ActionType.VERIFY_EMAIL, issued.token)


def test_reissue_invalidates_previous_token(action_tokens):
    first = action_tokens.issue(ActionType.RESET_PASSWORD, EMAIL, "uid-1")
    second = action_tokens.issue(ActionType.RESET_PASSWORD, EMAIL, "uid-1")

    with pytest.raises(SignatureInvalid):
        action_tokens.verify(ActionType.RESET_PASSWORD, first.token)
    # the failed attempt does not consume the live key
    assert action_tokens.verify(ActionType.RESET_PASSWORD, second.token).email == EMAIL


def test_expired_token_fails_while_key_is_present(action_tokens, key_store, expired):
    issued = action_tokens.issue(ActionType.VERIFY_EMAIL, EMAIL, "uid-1", ttl=expired)

    with pytest.raises(TokenExpired):
        action_tokens.verify(ActionType.VERIFY_EMAIL, issued.token)
    assert key_store.get("verify-email", EMAIL) is not None


def test_token_for_other_action_type_is_not_found(action_tokens):
    issued = action_tokens.issue(ActionType.VERIFY_EMAIL, EMAIL, "uid-1")
    with pytest.raises(KeyNotFound):
        action_tokens.verify(ActionType.RESET_PASSWORD, issued.token)


def test_forged_token_with_other_key_is_rejected(action_tokens):
    action_tokens.issue(ActionType.VERIFY_EMAIL, EMAIL, "uid-1")
    forged = sign_action_token(EMAIL, "x" * 32, timedelta(hours=1))
    with pytest.raises(SignatureInvalid):
        action_tokens.verify(ActionType.VERIFY_EMAIL, forged)


@pytest.mark.parametrize("token", [
    "definitely-not-a-jwt",
    jwt.encode({"sub": "uid-1"}, "k" * 32, algorithm="HS256"),
    jwt.encode({"email": ""}, "k" * 32, algorithm="HS256"),
])
def test_malformed_tokens(action_tokens, token):
    with pytest.raises(MalformedToken):
        action_tokens.verify(ActionType.VERIFY_EMAIL, token)


def test_unknown_email_is_key_not_found(action_tokens):
    token = sign_action_token("stranger@example.com", "k" * 32, timedelta(hours=1))
    with pytest.raises(KeyNotFound):
        action_tokens.verify(ActionType.VERIFY_EMAIL, token)


def test_keys_are_not_shared_between_emails(action_tokens, key_store):
    action_tokens.issue(ActionType.VERIFY_EMAIL, "a@example.com", "uid-1")
    action_tokens.issue(ActionType.VERIFY_EMAIL, "b@example.com", "uid-2")
    assert (key_store.get("verify-email", "a@example.com").signing_key
            != key_store.get("verify-email", "b@example.com").signing_key)


def test_key_survives_when_before_consume_fails(action_tokens, key_store):
    issued = action_tokens.issue(ActionType.RESET_PASSWORD, EMAIL, "uid-1")

    def fail(verified):
        assert verified.owner_id == "uid-1"
        raise RuntimeError("provider down")

    with pytest.raises(RuntimeError):
        action_tokens.verify(ActionType.RESET_PASSWORD, issued.token, before_consume=fail)
    assert key_store.get("reset-password", EMAIL) is not None

    seen = []
    action_tokens.verify(ActionType.RESET_PASSWORD, issued.token, before_consume=seen.append)
    assert [v.email for v in seen] == [EMAIL]
    assert key_store.get("reset-password", EMAIL) is None


def test_email_states_configured_expiry(action_tokens, dispatcher):
    action_tokens.issue(ActionType.RESET_PASSWORD, EMAIL, "uid-1", ttl=timedelta(minutes=30))
    assert "expire in 30 minutes" in dispatcher.sent[0]["body"]
