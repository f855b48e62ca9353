"""
Session issuer.

Mints and verifies signed, time-bounded session tokens (HS256 JWTs). Tokens
are stateless: there is no server-side session table and a token cannot be
revoked before it expires, which bounds a leaked token to its lifetime.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import jwt

from domain.errors import InvalidToken, MissingToken
from domain.time import utc_now
from domain.user import Principal, SessionToken, User
from settings import get_settings

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"
_BEARER_PREFIX = "bearer "


def issue_token(user: User, now: Optional[datetime] = None) -> SessionToken:
    """
    Sign a session token for a user.

    Claims: sub (user id), username, iat, exp.
    """

    settings = get_settings()
    issued_at = now or utc_now()
    payload = {
        "sub": str(user.user_id),
        "username": user.username,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=settings.session_ttl_seconds),
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=_ALGORITHM)
    return SessionToken(token=token, expires_in=settings.session_ttl_seconds)


def verify_token(token: Optional[str]) -> Principal:
    """
    Check signature and expiry and return the caller's identity.

    Raises:
        MissingToken: No token presented
        InvalidToken: Bad signature, wrong algorithm, malformed claims or expired
    """

    if not token:
        raise MissingToken()

    try:
        claims = jwt.decode(
            token,
            get_settings().jwt_secret,
            algorithms=[_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Expired session token presented")
        raise InvalidToken("Token expired")
    except jwt.InvalidTokenError as e:
        logger.info("Invalid session token presented", extra={"error": str(e)})
        raise InvalidToken()

    try:
        return Principal(user_id=UUID(str(claims["sub"])), username=str(claims.get("username", "")))
    except ValueError:
        raise InvalidToken()


def principal_from_authorization(header: Optional[str]) -> Principal:
    """Verify an `Authorization: Bearer <token>` header value."""

    if not header:
        raise MissingToken()
    if not header.lower().startswith(_BEARER_PREFIX):
        raise InvalidToken("Authorization header must use the Bearer scheme")
    return verify_token(header[len(_BEARER_PREFIX):].strip())


__all__ = [
    "issue_token",
    "verify_token",
    "principal_from_authorization",
]
