"""
Supabase client construction.

This module contains *only* the database connection setup. The client is
built once at process start by the engine wiring and handed to the Supabase
document store; nothing here holds a module-level connection.
"""

from __future__ import annotations

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]
from supabase.lib.client_options import ClientOptions  # type: ignore[import-not-found]


def create_supabase_client(url: str, key: str, timeout_seconds: float) -> Client:
    """
    Create the official Supabase Python client with bounded PostgREST I/O.

    Args:
        url: Supabase project URL
        key: Supabase API key (use a server-side key only on the backend)
        timeout_seconds: Upper bound for every PostgREST request

    Returns:
        Configured supabase Client
    """

    options = ClientOptions(postgrest_client_timeout=timeout_seconds)
    return create_client(url, key, options=options)


__all__ = ["create_supabase_client"]
