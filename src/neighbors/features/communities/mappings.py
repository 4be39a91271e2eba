"""Household-to-community mapping store (household_hoa table)."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from src.neighbors.features.communities.address import normalize_address_locally
from src.neighbors.features.communities.models import HouseholdMapping, MappingSource
from src.neighbors.services.database import (
    StoreError,
    SupabaseQueryBuilder,
    TransientStoreError,
    UniqueConflictError,
    get_query_builder,
    get_user_query_builder,
)

logger = logging.getLogger(__name__)

MAPPINGS_TABLE = "household_hoa"


class MappingStore:
    """Reads and writes household mappings through the service-role client."""

    def __init__(
        self,
        db: SupabaseQueryBuilder | None = None,
        user_db: Callable[[str], SupabaseQueryBuilder] = get_user_query_builder,
    ) -> None:
        self.db = db or get_query_builder()
        self.user_db = user_db

    def normalize_address(self, address: str) -> str:
        """
        Canonical form of an address, as used for mapping lookups.

        Uses the database's normalize_address function so lookups agree with
        rows written by other clients; falls back to local normalization if
        the RPC is unavailable.
        """
        try:
            normalized = self.db.rpc("normalize_address", {"_addr": address})
        except TransientStoreError as e:
            logger.warning(f"normalize_address RPC failed, normalizing locally: {e}")
            normalized = None
        if isinstance(normalized, list):
            normalized = normalized[0] if normalized else None
        return str(normalized) if normalized else normalize_address_locally(address)

    def find_mapping_by_address(self, normalized_address: str) -> HouseholdMapping | None:
        """Most recent mapping for a normalized address."""
        rows = self.db.list_records(
            MAPPINGS_TABLE,
            filters={"normalized_address": normalized_address},
            order_by="created_at",
            order_desc=True,
            limit=1,
        )
        return HouseholdMapping.model_validate(rows[0]) if rows else None

    def find_mapping_by_member(self, user_id: UUID | str) -> HouseholdMapping | None:
        """Most recent mapping created by a member."""
        rows = self.db.list_records(
            MAPPINGS_TABLE,
            filters={"created_by": str(user_id)},
            order_by="created_at",
            order_desc=True,
            limit=1,
        )
        return HouseholdMapping.model_validate(rows[0]) if rows else None

    def find_community_for_member(
        self, user_id: UUID | str, access_token: str | None = None
    ) -> str | None:
        """
        Community a member belongs to, by membership.

        Asks the get_my_hoa RPC as the member when a session token is
        available, then falls back to the newest mapping the member created.
        """
        if access_token:
            try:
                rows = self.user_db(access_token).rpc("get_my_hoa")
            except StoreError as e:
                logger.warning(f"get_my_hoa failed for {user_id}, using created mappings: {e}")
                rows = None
            row = rows[0] if isinstance(rows, list) and rows else None
            if row and row.get("hoa_name"):
                return row["hoa_name"]

        mapping = self.find_mapping_by_member(user_id)
        return mapping.hoa_name if mapping else None

    def find_mapping(self, normalized_address: str, community: str) -> HouseholdMapping | None:
        """The mapping of an address to one specific community."""
        rows = self.db.list_records(
            MAPPINGS_TABLE,
            filters={"normalized_address": normalized_address, "hoa_name": community},
            limit=1,
        )
        return HouseholdMapping.model_validate(rows[0]) if rows else None

    def create_or_get_mapping(
        self,
        household_address: str,
        normalized_address: str,
        community: str,
        created_by: UUID | str | None = None,
        source: MappingSource = MappingSource.SIGNUP,
    ) -> HouseholdMapping:
        """
        Map a household to a community, idempotently.

        Idempotent on (normalized address, community): an address may belong
        to several communities, one row each. A concurrent insert that loses
        the unique race re-reads the row for the same pair.
        """
        existing = self.find_mapping(normalized_address, community)
        if existing is not None:
            return existing

        record = {
            "household_address": household_address,
            "normalized_address": normalized_address,
            "hoa_name": community,
            "created_by": str(created_by) if created_by else None,
            "mapping_source": source.value,
            "created_at": datetime.now(UTC).isoformat(),
        }
        try:
            row = self.db.insert_record(MAPPINGS_TABLE, record)
        except UniqueConflictError:
            existing = self.find_mapping(normalized_address, community)
            if existing is None:
                raise
            return existing

        logger.info(
            f"Household mapped to {community}",
            extra={"normalized_address": normalized_address, "mapping_source": source.value},
        )
        return HouseholdMapping.model_validate(row or record)
