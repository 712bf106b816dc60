"""
Shared authentication helpers.
Provides token creation, verification, and request-level identity resolution.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from flask import Response, jsonify, request

from eventhub.auth_service.models import User
from eventhub.auth_service.store import UserStore
from eventhub.core.exceptions import (
    ConfigurationError,
    TokenError,
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
)
from eventhub.core.services import get_services

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    role: str


class TokenService:
    """
    Issues and verifies signed, time-bound identity tokens (JWT).

    Verification is a pure function of the token and the secret; it never
    consults a store.
    """

    def __init__(
        self,
        secret: str,
        expires_minutes: int = 1440,
        issuer: str = "virtual-event-platform",
        audience: str = "virtual-event-users",
        algorithm: str = "HS256",
    ):
        if not secret:
            raise ConfigurationError("JWT_SECRET is missing. Set it in .env")
        self._secret = secret
        self.expires_minutes = expires_minutes
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm

    # --- JWT CREATION ---
    def issue(self, user: User) -> str:
        """
        Generates a new JWT for a given user.

        Args:
            user (User): The account the token asserts.

        Returns:
            str: Encoded JWT string.
        """
        now = datetime.now(timezone.utc)

        payload = {
            "sub": user.id,
            "email": user.email,
            "role": user.role,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + timedelta(minutes=self.expires_minutes),
        }

        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    # --- JWT VALIDATION ---
    def verify(self, token: str) -> TokenClaims:
        """
        Validate a JWT and return the identity it asserts.

        Raises:
            TokenExpiredError: The token is past its expiry.
            TokenSignatureError: The signature does not match the secret.
            TokenMalformedError: Anything else (undecodable, wrong issuer or
                audience, missing claims).
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.InvalidSignatureError as e:
            raise TokenSignatureError() from e
        except jwt.InvalidTokenError as e:
            raise TokenMalformedError() from e

        user_id = payload.get("sub")
        role = payload.get("role")
        if not user_id or not role:
            raise TokenMalformedError()
        return TokenClaims(user_id=user_id, email=payload.get("email", ""), role=role)


def resolve_user(token: str, tokens: TokenService, users: UserStore) -> User:
    """
    Turn a bearer token into a live account.

    Verification, then lookup, then the liveness check. A valid token for a
    deleted or deactivated account fails exactly like a garbage token.

    Raises:
        TokenExpiredError, TokenMalformedError, TokenSignatureError
    """
    claims = tokens.verify(token)
    user = users.find_by_id(claims.user_id)
    if user is None or not user.is_active:
        raise TokenMalformedError()
    return user


def _bearer_token() -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def _denied(message: str) -> Tuple[Response, int]:
    return jsonify({"error": ACCESS_DENIED, "message": message}), 401


def verify_token_from_request(
    required_roles: Optional[list] = None,
) -> Tuple[Optional[User], Optional[Response], Optional[int]]:
    """
    Verify the JWT in the Authorization header and resolve the caller.

    Args:
        required_roles (list, optional): List of allowed roles.

    Returns:
        tuple: (user, error_response, status_code)
               If successful, error_response and status_code are None.
               If failed, user is None.
    """
    token = _bearer_token()
    if not token:
        return (None, *_denied("No token provided"))

    services = get_services()
    try:
        user = resolve_user(token, services.tokens, services.users)
    except TokenError as e:
        logger.info(f"[Auth] Rejected token: {e.code}")
        return (None, *_denied(e.message))

    if required_roles and user.role not in required_roles:
        label = " or ".join(r.capitalize() for r in required_roles)
        return None, jsonify({"error": "Access forbidden", "message": f"{label} role required"}), 403

    return user, None, None


def optional_user() -> Optional[User]:
    """
    Resolve the caller if a usable token is present (optional usage).

    Returns:
        User: the caller, or None when there is no token or it does not resolve.
    """
    token = _bearer_token()
    if not token:
        return None
    services = get_services()
    try:
        return resolve_user(token, services.tokens, services.users)
    except TokenError:
        return None
