"""Password hashing and the JWT access tokens handed out at login.

Tokens carry the user id (``sub``), email, role and, for branch staff and
drivers, the branch they belong to. The role claim is informational: every
request reloads the user, so a role change or deactivation takes effect
before the token expires.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from jwt.exceptions import PyJWTError

from aquaflow.core.config import settings

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
TOKEN_COOKIE = "access_token"


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a login password; a malformed stored hash counts as a mismatch."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as e:
        logger.warning(f"Stored password hash is unusable: {e}")
        return False


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        **data,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def token_for_user(user) -> str:
    """Access token for a freshly authenticated ``User``."""
    claims = {"sub": str(user.id), "email": user.email, "role": user.role.value}
    if user.branch_id:
        claims["branchId"] = user.branch_id
    return create_access_token(claims)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Claims of a valid, unexpired token, else ``None``."""
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require": ["exp", "sub"]},
        )
    except PyJWTError as e:
        logger.debug(f"Rejected access token: {e}")
        return None


def token_from_request(headers, cookies) -> str | None:
    """Bearer token from the Authorization header, falling back to the cookie."""
    auth_header = headers.get("Authorization", "")
    if auth_header.startswith(BEARER_PREFIX) and auth_header[len(BEARER_PREFIX):]:
        return auth_header[len(BEARER_PREFIX):]
    return cookies.get(TOKEN_COOKIE)
