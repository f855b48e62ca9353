"""
Domain: User accounts and authenticated principals.

A User is created by registration and owns zero or more Sales. A Principal is
the verified identity attached to a single request; every ledger and checkout
operation receives one explicitly instead of reading ambient session state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True, slots=True)
class User:
    """
    Staff account stored in the credential store.

    `credential_hash` is a salted bcrypt hash; the plaintext password is never
    stored or kept on the entity.
    """

    user_id: UUID
    username: str
    credential_hash: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class Principal:
    """Verified identity of the caller of a request."""

    user_id: UUID
    username: str


@dataclass(frozen=True, slots=True)
class SessionToken:
    """Signed, time-bounded session token issued at login."""

    token: str
    expires_in: int
