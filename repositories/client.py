"""
Supabase client initialization.

This module contains *only* the database connection setup. Repository modules
call `get_supabase()` for the shared client and run every query through
`execute()`, which turns transport failures, timeouts and PostgREST errors into
`StoreUnavailable` so callers see one retryable error type.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, List

import httpx
from postgrest.exceptions import APIError

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, ClientOptions, create_client  # type: ignore[import-not-found]

from domain.errors import StoreUnavailable
from settings import get_settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Create the Supabase client once, with a request timeout on every query."""

    settings = get_settings()
    options = ClientOptions(postgrest_client_timeout=settings.store_timeout_seconds)
    return create_client(settings.supabase_url, settings.supabase_key, options=options)


def execute(query: Any, action: str) -> List[dict]:
    """
    Run a PostgREST query builder and return its rows.

    Args:
        query: A Supabase query builder (table(...).select(...)...)
        action: Short description used in logs and error messages

    Returns:
        Rows returned by the query (possibly empty)

    Raises:
        StoreUnavailable: On timeouts, transport errors or PostgREST errors
    """

    try:
        response = query.execute()
    except httpx.TimeoutException as e:
        logger.error("Store timed out", extra={"action": action, "error": str(e)})
        raise StoreUnavailable(f"Storage timed out while trying to {action}") from e
    except (httpx.HTTPError, APIError) as e:
        logger.error("Store request failed", extra={"action": action, "error": str(e)})
        raise StoreUnavailable(f"Failed to {action}") from e

    error = getattr(response, "error", None)
    if error:
        logger.error("Store returned an error", extra={"action": action, "error": str(error)})
        raise StoreUnavailable(f"Failed to {action}")

    return getattr(response, "data", None) or []


# PostgreSQL error code for a unique constraint violation.
UNIQUE_VIOLATION = "23505"


def is_unique_violation(error: BaseException) -> bool:
    """True if a StoreUnavailable was caused by a duplicate key insert."""

    cause = error.__cause__
    return isinstance(cause, APIError) and str(cause.code) == UNIQUE_VIOLATION


__all__ = ["get_supabase", "execute", "is_unique_violation"]
