"""Decides which community a signed-in resident belongs to."""

import logging
from uuid import UUID

from src.neighbors.features.communities.address import is_usable_address
from src.neighbors.features.communities.mappings import MappingStore
from src.neighbors.features.communities.models import ResolutionSource, ResolvedCommunity
from src.neighbors.features.communities.names import (
    DEFAULT_COMMUNITY_SLUG,
    canonical_slug,
    display_name_for,
)
from src.neighbors.features.profiles.models import CommunitySignup, UserProfile
from src.neighbors.features.profiles.store import ProfileStore

logger = logging.getLogger(__name__)


class CommunityResolver:
    """
    Resolve a resident's community, in priority order:

    1. Explicit context (a community in the URL or the continuation)
    2. The community the resident signed up from
    3. The mapping for the resident's household address
    4. The resident's membership (get_my_hoa, else the newest mapping they created)
    5. The default community

    Always returns a community; an unknown resident gets the default.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        mappings: MappingStore,
        default_slug: str = DEFAULT_COMMUNITY_SLUG,
    ) -> None:
        self.profiles = profiles
        self.mappings = mappings
        self.default_slug = default_slug

    def resolve_community(self, user_id: UUID | str, explicit: str | None = None) -> ResolvedCommunity:
        return self.resolve(self.profiles.get_profile_by_id(user_id), explicit=explicit)

    def resolve(
        self,
        profile: UserProfile | None,
        explicit: str | None = None,
        access_token: str | None = None,
    ) -> ResolvedCommunity:
        if explicit and explicit.strip():
            return self._resolved(explicit, ResolutionSource.EXPLICIT)

        if profile is None:
            return self._resolved(self.default_slug, ResolutionSource.DEFAULT)

        if isinstance(profile.signup_source, CommunitySignup):
            return self._resolved(profile.signup_source.name, ResolutionSource.SIGNUP_SOURCE)

        if is_usable_address(profile.address):
            normalized = profile.normalized_address or self.mappings.normalize_address(profile.address)
            mapping = self.mappings.find_mapping_by_address(normalized)
            if mapping is not None:
                return self._resolved(mapping.hoa_name, ResolutionSource.ADDRESS_MAPPING)

        membership = self.mappings.find_community_for_member(profile.id, access_token)
        if membership:
            return self._resolved(membership, ResolutionSource.MEMBERSHIP)

        logger.info(f"No community found for {profile.id}, using default")
        return self._resolved(self.default_slug, ResolutionSource.DEFAULT)

    def _resolved(self, name: str, source: ResolutionSource) -> ResolvedCommunity:
        slug = canonical_slug(name)
        return ResolvedCommunity(slug=slug, display_name=display_name_for(slug), source=source)
