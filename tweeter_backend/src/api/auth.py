"""
Authentication: password hashing, signed login tokens, and the
restore/require current-user dependencies.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends, Request

from src.api.config import Settings
from src.api.db import UserRepository, get_user_repository
from src.api.errors import UnauthorizedError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Salted one-way hash of ``password``."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


# PUBLIC_INTERFACE
def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


# PUBLIC_INTERFACE
def issue_token(user: Dict[str, Any], settings: Settings) -> str:
    """Sign a token identifying ``user`` that expires after ``settings.token_ttl_seconds``."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user["id"]),
        "username": user["username"],
        "email": user["email"],
        "iat": now,
        "exp": now + timedelta(seconds=settings.token_ttl_seconds),
    }
    return jwt.encode(claims, settings.secret_or_key, algorithm=JWT_ALGORITHM)


# PUBLIC_INTERFACE
def decode_token(token: str, settings: Settings) -> Optional[Dict[str, Any]]:
    """Return the token's claims, or None if it is malformed, forged or expired."""
    try:
        return jwt.decode(token, settings.secret_or_key, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected token: %s", e)
        return None


# PUBLIC_INTERFACE
def issue_login_payload(user: Dict[str, Any], settings: Settings) -> Dict[str, Any]:
    """Public identity fields of ``user`` plus a fresh token."""
    return {
        "id": user["id"],
        "username": user["username"],
        "email": user["email"],
        "token": issue_token(user, settings),
    }


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, credentials = header.strip().partition(" ")
    if not credentials:
        # bare token without a scheme
        return scheme or None
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


# Dependencies
def restore_current_user(
    request: Request, users: UserRepository = Depends(get_user_repository)
) -> Optional[Dict[str, Any]]:
    """
    Resolve the user identified by the request's bearer token, if any.

    The user (or None) is also stored on ``request.state.user``. Never fails.
    """
    user = None
    token = _bearer_token(request)
    if token:
        claims = decode_token(token, request.app.state.settings)
        if claims:
            user = users.get_by_id(claims.get("sub"))
    request.state.user = user
    return user


def require_current_user(user: Optional[Dict[str, Any]] = Depends(restore_current_user)) -> Dict[str, Any]:
    if user is None:
        raise UnauthorizedError()
    return user
