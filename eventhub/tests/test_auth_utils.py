import os

import jwt
import pytest

from eventhub.auth_service.utils import (
    TokenService,
    optional_user,
    resolve_user,
    verify_token_from_request,
)
from eventhub.core.exceptions import (
    ConfigurationError,
    TokenError,
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
)

TEST_SECRET = os.environ["JWT_SECRET"]


@pytest.fixture
def tokens():
    return TokenService(TEST_SECRET)


@pytest.fixture
def user(user_store):
    return user_store.create("test@example.com", "password123", "Test", "User", role="organizer")


def test_missing_secret_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        TokenService("")


def test_issue_token(tokens, user):
    token = tokens.issue(user)

    assert isinstance(token, str)

    payload = jwt.decode(
        token, TEST_SECRET, algorithms=["HS256"],
        audience="virtual-event-users", issuer="virtual-event-platform",
    )
    assert payload["sub"] == user.id
    assert payload["email"] == "test@example.com"
    assert payload["role"] == "organizer"
    assert "exp" in payload
    assert "iat" in payload


def test_verify_token(tokens, user):
    claims = tokens.verify(tokens.issue(user))

    assert claims.user_id == user.id
    assert claims.role == "organizer"
    assert claims.email == "test@example.com"


def test_verify_expired_token(user):
    expired = TokenService(TEST_SECRET, expires_minutes=-1)

    with pytest.raises(TokenExpiredError):
        expired.verify(expired.issue(user))


def test_verify_wrong_secret(tokens, user):
    other = TokenService("another_secret_that_is_also_long_enough")

    with pytest.raises(TokenSignatureError):
        tokens.verify(other.issue(user))


def test_verify_wrong_audience(tokens, user):
    other = TokenService(TEST_SECRET, audience="someone-else")

    with pytest.raises(TokenMalformedError):
        tokens.verify(other.issue(user))


def test_verify_garbage(tokens):
    with pytest.raises(TokenMalformedError):
        tokens.verify("invalid.token.here")


def test_deleted_user_fails_like_invalid_token(tokens, user, user_store):
    token = tokens.issue(user)
    user_store.delete(user.id)

    with pytest.raises(TokenError) as deleted:
        resolve_user(token, tokens, user_store)
    with pytest.raises(TokenError) as garbage:
        resolve_user("invalid.token.here", tokens, user_store)

    assert type(deleted.value) is type(garbage.value)
    assert deleted.value.message == garbage.value.message


def test_deactivated_user_fails_like_invalid_token(tokens, user, user_store):
    token = tokens.issue(user)
    user_store.deactivate(user.id)

    with pytest.raises(TokenMalformedError) as exc:
        resolve_user(token, tokens, user_store)
    assert exc.value.message == "Invalid token"


# --- REQUEST HELPERS ---

def _issue(app, email, role):
    with app.app_context():
        from eventhub.core.services import get_services
        services = get_services()
        user = services.users.create(email, "password123", "Test", "User", role=role)
        return user, services.tokens.issue(user)


def test_verify_token_from_request_valid(app):
    user, token = _issue(app, "org@example.com", "organizer")

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        found, err, code = verify_token_from_request()
        assert found is user
        assert err is None
        assert code is None


def test_verify_token_from_request_missing_header(app):
    with app.test_request_context():
        found, err, code = verify_token_from_request()
        assert found is None
        assert code == 401
        assert err.json["message"] == "No token provided"


def test_verify_token_from_request_invalid_format(app):
    with app.test_request_context(headers={"Authorization": "InvalidFormat"}):
        found, err, code = verify_token_from_request()
        assert found is None
        assert code == 401
        assert err.json["error"] == "Access denied"


def test_verify_token_from_request_wrong_role(app):
    _, token = _issue(app, "att@example.com", "attendee")

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        found, err, code = verify_token_from_request(required_roles=["organizer"])
        assert found is None
        assert code == 403
        assert err.json["message"] == "Organizer role required"


def test_optional_user(app):
    user, token = _issue(app, "att@example.com", "attendee")

    with app.test_request_context(headers={"Authorization": f"Bearer {token}"}):
        assert optional_user() is user
    with app.test_request_context(headers={"Authorization": "Bearer garbage"}):
        assert optional_user() is None
    with app.test_request_context():
        assert optional_user() is None
