"""Supabase client singleton for database operations."""

from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from src.core.config import get_settings

# PostgREST codes that mean "the query matched nothing"
NO_ROWS_ERROR_CODES = frozenset({"PGRST116", "406", "PGRST301"})


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton for database operations.

    Uses secret key (sb_secret_) for backend operations, which bypasses RLS
    at the PostgREST level. This should only be used for server-side
    database operations where proper authorization has already been verified.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


def is_no_rows_error(error: Exception) -> bool:
    """Check whether a PostgREST error only means that no rows matched.

    Args:
        error: Exception raised by the query builder.

    Returns:
        bool: True if the error is the empty-result case.
    """
    code = str(getattr(error, "code", "") or "")
    message = str(getattr(error, "message", "") or error)
    return code in NO_ROWS_ERROR_CODES or "No rows" in message or "not found" in message


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Performs a simple query to verify database connectivity.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        client.table("orders").select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
