"""
Create a demo user for local testing.

Usage:
    python scripts/create_demo_user.py [username] [password]

Defaults to alice / pw1. The password is stored as a bcrypt hash.
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import from services
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import LedgerError, UsernameTaken
from services.auth_service import register


def create_demo_user(username: str = "alice", password: str = "pw1") -> None:
    """Register the demo user unless it already exists."""

    try:
        user = register(username, password)
    except UsernameTaken:
        print(f"Demo user already exists: {username}")
        return
    except LedgerError as e:
        print(f"[ERROR] Failed to create demo user: {e.message}")
        sys.exit(1)

    print("[SUCCESS] Demo user created successfully!")
    print(f"  User ID: {user.user_id}")
    print(f"  Username: {user.username}")


if __name__ == "__main__":
    create_demo_user(*sys.argv[1:3])
