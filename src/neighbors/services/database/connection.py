"""Supabase database connection management."""

from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from src.neighbors.config import settings


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get Supabase client instance with anon key (singleton pattern).

    Use this for operations that should respect RLS policies.
    For server-side operations that need to bypass RLS, use get_supabase_admin_client().

    Returns:
        Configured Supabase client with anon key for RLS-protected operations
    """
    return create_client(settings.supabase_url, settings.supabase_anon_key)


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """
    Get Supabase admin client with service role key (singleton pattern).

    This client bypasses Row-Level Security (RLS) policies and is used for the
    profile store, the mapping store and the auth admin API (orphan repair,
    session sign-out).

    ⚠️ WARNING: This client has full database access. Only use for trusted server-side operations.

    Returns:
        Configured Supabase client with service role key (bypasses RLS)
    """
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def get_supabase_auth_client() -> Client:
    """
    Create a throwaway anon client for end-user auth flows.

    sign_up and sign_in_with_otp store the resulting session on the client
    they were called on, so each flow gets its own client with persistence
    and token refresh switched off instead of touching the shared singletons.

    Returns:
        Fresh Supabase client with anon key and no session persistence
    """
    return create_client(
        settings.supabase_url,
        settings.supabase_anon_key,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )
