"""Generic database utility functions for Supabase interactions."""

import logging
from typing import Any
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from src.neighbors.services.database.connection import (
    get_supabase_admin_client,
    get_supabase_auth_client,
    get_supabase_client,
)
from src.neighbors.services.database.exceptions import TransientStoreError, UniqueConflictError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION_CODE = "23505"


def is_unique_violation(error: APIError) -> bool:
    """Check whether a PostgREST error is a unique constraint violation."""
    if getattr(error, "code", None) == UNIQUE_VIOLATION_CODE:
        return True
    message = (getattr(error, "message", None) or str(error)).lower()
    return "duplicate key" in message or "unique constraint" in message


class SupabaseQueryBuilder:
    """Helper class for building and executing Supabase queries."""

    def __init__(self, client: Client | None = None) -> None:
        """
        Initialize query builder.

        Args:
            client: Supabase client instance (uses default if None)
        """
        self.client = client or get_supabase_client()

    def _execute(self, query: Any, operation: str) -> Any:
        """
        Execute a PostgREST query and translate failures into store errors.

        Args:
            query: Prepared query or RPC builder
            operation: Short description used in logs (e.g. "insert users")

        Returns:
            The PostgREST response object

        Raises:
            UniqueConflictError: If the write violated a unique constraint
            TransientStoreError: For any other PostgREST, HTTP or timeout failure
        """
        try:
            return query.execute()
        except APIError as e:
            if is_unique_violation(e):
                logger.info(
                    f"Unique conflict during {operation}: {e}",
                    extra={"operation": operation, "error_type": "unique_conflict"},
                )
                raise UniqueConflictError(str(e)) from e
            logger.error(
                f"Store error during {operation}: {e}",
                extra={"operation": operation, "error_type": "store_error"},
            )
            raise TransientStoreError(f"{operation} failed: {e}") from e
        except httpx.HTTPError as e:
            logger.error(
                f"Store call failed during {operation}: {e}",
                extra={"operation": operation, "error_type": "store_unavailable"},
            )
            raise TransientStoreError(f"{operation} failed: {e}") from e

    def get_by_id(
        self, table: str, record_id: UUID | str, columns: str = "*"
    ) -> dict[str, Any] | None:
        """
        Fetch a single record by ID.

        Args:
            table: Table name
            record_id: Record UUID or ID
            columns: Columns to select (default: "*")

        Returns:
            Record dictionary or None if not found

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> profile = builder.get_by_id("users", user_id)
        """
        query = self.client.table(table).select(columns).eq("id", str(record_id))
        response = self._execute(query, f"select {table}")
        return response.data[0] if response.data else None

    def get_by_field(
        self, table: str, field: str, value: Any, columns: str = "*"
    ) -> dict[str, Any] | None:
        """
        Fetch a single record by field value.

        Args:
            table: Table name
            field: Field name to filter by
            value: Field value
            columns: Columns to select (default: "*")

        Returns:
            First matching record or None

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> user = builder.get_by_field("users", "email", "user@example.com")
        """
        query = self.client.table(table).select(columns).eq(field, value)
        response = self._execute(query, f"select {table}")
        return response.data[0] if response.data else None

    def list_records(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        order_desc: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        List records with optional filtering, ordering, and pagination.

        Args:
            table: Table name
            columns: Columns to select (default: "*")
            filters: Dictionary of field:value pairs for filtering
            order_by: Column to order by
            order_desc: Order descending (default: True)
            limit: Maximum records to return
            offset: Number of records to skip

        Returns:
            List of record dictionaries

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> mappings = builder.list_records(
            ...     "household_hoa",
            ...     filters={"normalized_address": "123 oak st"},
            ...     order_by="created_at",
            ...     limit=1
            ... )
        """
        query = self.client.table(table).select(columns)

        if filters:
            for field, value in filters.items():
                query = query.eq(field, value)

        if order_by:
            query = query.order(order_by, desc=order_desc)

        if limit is not None:
            query = query.range(offset, offset + limit - 1)

        response = self._execute(query, f"list {table}")
        return response.data

    def insert_record(self, table: str, data: dict[str, Any]) -> dict[str, Any] | None:
        """
        Insert a single record.

        Args:
            table: Table name
            data: Record data dictionary

        Returns:
            Inserted record dictionary or None if failed

        Raises:
            UniqueConflictError: If the insert violates a unique constraint
            TransientStoreError: If the insert fails for any other reason
        """
        query = self.client.table(table).insert(data)
        response = self._execute(query, f"insert {table}")
        return response.data[0] if response.data else None

    def upsert_record(
        self, table: str, record: dict[str, Any], conflict_columns: list[str]
    ) -> dict[str, Any] | None:
        """
        Insert or update a record atomically using PostgreSQL UPSERT.

        A conflict on a unique column that is not part of ``conflict_columns``
        (e.g. email when upserting on id) still raises UniqueConflictError.

        Args:
            table: Name of the table
            record: Record data to insert/update
            conflict_columns: Column(s) to check for conflicts (e.g., ["id"])

        Returns:
            The inserted or updated record
        """
        query = self.client.table(table).upsert(record, on_conflict=",".join(conflict_columns))
        response = self._execute(query, f"upsert {table}")
        return response.data[0] if response.data else None

    def update_record(
        self, table: str, record_id: UUID | str, data: dict[str, Any]
    ) -> dict[str, Any] | None:
        """
        Update a record by ID.

        Args:
            table: Table name
            record_id: Record UUID or ID
            data: Fields to update

        Returns:
            Updated record dictionary or None if not found
        """
        query = self.client.table(table).update(data).eq("id", str(record_id))
        response = self._execute(query, f"update {table}")
        return response.data[0] if response.data else None

    def rpc(self, function_name: str, params: dict[str, Any] | None = None) -> Any:
        """
        Call a PostgreSQL function exposed through PostgREST.

        Args:
            function_name: Name of the database function
            params: Named arguments for the function

        Returns:
            The function's result payload (scalar, row list or None)

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> status = builder.rpc("get_email_status", {"_email": "user@example.com"})
        """
        query = self.client.rpc(function_name, params or {})
        response = self._execute(query, f"rpc {function_name}")
        return response.data


def get_query_builder(client: Client | None = None, use_admin: bool = True) -> SupabaseQueryBuilder:
    """
    Get instance of SupabaseQueryBuilder.

    Args:
        client: Optional Supabase client (uses default if None)
        use_admin: If True (default), uses admin client that bypasses RLS.
                   Set to False for operations that should respect RLS policies.

    Returns:
        SupabaseQueryBuilder instance

    Example:
        >>> db = get_query_builder()  # Uses admin client (bypasses RLS)
        >>> profile = db.get_by_field("users", "email", "user@example.com")
    """
    if client is None:
        client = get_supabase_admin_client() if use_admin else get_supabase_client()
    return SupabaseQueryBuilder(client)


def get_user_query_builder(access_token: str) -> SupabaseQueryBuilder:
    """
    Query builder that runs as a signed-in user.

    RLS policies and auth.uid() see the user behind ``access_token``, which
    RPCs such as get_my_hoa depend on.
    """
    client = get_supabase_auth_client()
    client.postgrest.auth(access_token)
    return SupabaseQueryBuilder(client)
