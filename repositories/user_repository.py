"""
User repository (credential store persistence).

Provides lookups and inserts for staff accounts. Password hashing and
verification live in the auth service; this module only stores the hash.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from domain.user import User
from domain.errors import StoreUnavailable, UsernameTaken
from repositories.client import execute, get_supabase, is_unique_violation

_USERS_TABLE: str = "users"


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        user_id=UUID(str(row["id"])),
        username=str(row["username"]),
        credential_hash=str(row["password_hash"]),
    )


def get_user_by_username(username: str) -> Optional[User]:
    """
    Get a user by username.

    Returns:
        User domain model or None if not found
    """

    rows = execute(
        get_supabase()
        .table(_USERS_TABLE)
        .select("id, username, password_hash")
        .eq("username", username)
        .limit(1),
        "fetch user",
    )
    if not rows:
        return None
    return _row_to_user(rows[0])


def username_exists(username: str) -> bool:
    rows = execute(
        get_supabase().table(_USERS_TABLE).select("id").eq("username", username).limit(1),
        "check username",
    )
    return bool(rows)


def create_user(username: str, credential_hash: str) -> User:
    """
    Insert a new user with an already hashed credential.

    Args:
        username: Unique login name
        credential_hash: bcrypt hash of the password

    Returns:
        Created User domain model

    Raises:
        UsernameTaken: The username is already stored
    """

    user_id = uuid4()
    payload: dict[str, Any] = {
        "id": str(user_id),
        "username": username,
        "password_hash": credential_hash,
    }
    try:
        execute(get_supabase().table(_USERS_TABLE).insert(payload), "create user")
    except StoreUnavailable as e:
        # A concurrent registration won the unique constraint on username.
        if is_unique_violation(e):
            raise UsernameTaken() from e
        raise
    return User(user_id=user_id, username=username, credential_hash=credential_hash)


__all__ = [
    "get_user_by_username",
    "username_exists",
    "create_user",
]
