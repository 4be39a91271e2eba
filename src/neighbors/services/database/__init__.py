"""Database connection and query helpers."""

from src.neighbors.services.database.connection import (
    get_supabase_admin_client,
    get_supabase_auth_client,
    get_supabase_client,
)
from src.neighbors.services.database.exceptions import (
    StoreError,
    TransientStoreError,
    UniqueConflictError,
)
from src.neighbors.services.database.utils import (
    SupabaseQueryBuilder,
    get_query_builder,
    get_user_query_builder,
)

__all__ = [
    "get_supabase_client",
    "get_supabase_admin_client",
    "get_supabase_auth_client",
    "SupabaseQueryBuilder",
    "get_query_builder",
    "get_user_query_builder",
    "StoreError",
    "TransientStoreError",
    "UniqueConflictError",
]
