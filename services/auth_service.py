"""
Authentication service.

Handles registration and login against the credential store. Passwords are
stored as salted bcrypt hashes and never compared in plaintext.
"""

from __future__ import annotations

import logging

import bcrypt

from domain.errors import InvalidCredentialFormat, InvalidCredentials, UsernameTaken
from domain.user import SessionToken, User
from repositories.user_repository import create_user, get_user_by_username, username_exists
from services.session_service import issue_token

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 64
MIN_PASSWORD_LENGTH = 3
# bcrypt only considers the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72

# Compared against when the username does not exist so both paths do the same work.
_DUMMY_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt()).decode("utf-8")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, credential_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), credential_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored credential hash is not a valid bcrypt hash")
        return False


def _validate_credentials(username: str, password: str) -> None:
    if not (MIN_USERNAME_LENGTH <= len(username) <= MAX_USERNAME_LENGTH):
        raise InvalidCredentialFormat(
            f"Username must be between {MIN_USERNAME_LENGTH} and {MAX_USERNAME_LENGTH} characters"
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidCredentialFormat(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidCredentialFormat(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def register(username: str, password: str) -> User:
    """
    Create a new user account.

    Raises:
        InvalidCredentialFormat: Username or password fails basic checks
        UsernameTaken: The username is already registered
    """

    username = username.strip()
    _validate_credentials(username, password)

    if username_exists(username):
        raise UsernameTaken()

    user = create_user(username, hash_password(password))
    logger.info("User registered", extra={"user_id": str(user.user_id)})
    return user


def authenticate(username: str, password: str) -> SessionToken:
    """
    Verify credentials and issue a session token.

    Raises:
        InvalidCredentials: Unknown username or wrong password
    """

    user = get_user_by_username(username.strip())

    if user is None:
        check_password(password, _DUMMY_HASH)
        logger.info("Login failed: unknown user")
        raise InvalidCredentials()

    if not check_password(password, user.credential_hash):
        logger.info("Login failed: wrong password", extra={"user_id": str(user.user_id)})
        raise InvalidCredentials()

    logger.info("Login succeeded", extra={"user_id": str(user.user_id)})
    return issue_token(user)


__all__ = [
    "hash_password",
    "check_password",
    "register",
    "authenticate",
]
