"""Decides whether a resident resumes where they left off or lands on their community."""

import logging
import re
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit

from src.neighbors.config import settings
from src.neighbors.features.communities.models import ResolvedCommunity
from src.neighbors.features.communities.names import same_community
from src.neighbors.features.return_path.continuation import ContinuationService
from src.neighbors.features.return_path.models import ContinuationPayload, LandingDecision

logger = logging.getLogger(__name__)

COMMUNITY_PATH = re.compile(r"^/communities/([^/?#]+)")
# Never resume onto the auth pages themselves
EXCLUDED_PREFIXES = ("/auth", "/signin", "/complete-profile", "/consent")


def _under_prefix(path: str, prefix: str) -> bool:
    if prefix.endswith("/"):
        return path.startswith(prefix) and len(path) > len(prefix)
    return path == prefix or path.startswith(f"{prefix}/")


def landing_path(community_slug: str) -> str:
    """Default landing page of a community."""
    return f"/communities/{community_slug}?welcome=true"


def mismatch_notice(display_name: str) -> str:
    return f"We've directed you to {display_name} based on your registration."


class ReturnPathRouter:
    """Stores, validates and resolves return paths."""

    def __init__(
        self,
        continuations: ContinuationService,
        allowed_prefixes: list[str] | None = None,
    ) -> None:
        self.continuations = continuations
        self.allowed_prefixes = allowed_prefixes or settings.return_path_prefix_list

    def is_valid_return_path(self, path: str | None) -> bool:
        """
        Accept only paths inside this site's own routes.

        Rejects absolute and protocol-relative URLs, backslash tricks, and
        anything outside the allowed prefixes.
        """
        if not path or not path.startswith("/") or path.startswith("//"):
            return False
        if "\\" in path or any(ch in path for ch in "\r\n\t"):
            return False

        decoded = unquote(path)
        if decoded.startswith("//") or "\\" in decoded:
            return False

        parts = urlsplit(path)
        if parts.scheme or parts.netloc:
            return False

        if any(parts.path == p or parts.path.startswith(f"{p}/") for p in EXCLUDED_PREFIXES):
            return False
        return any(_under_prefix(parts.path, prefix) for prefix in self.allowed_prefixes)

    def extract_community_from_path(self, path: str | None) -> str | None:
        if not path:
            return None
        match = COMMUNITY_PATH.match(path)
        return unquote(match.group(1)) if match else None

    def store_return_path(
        self,
        path: str | None,
        query: str = "",
        *,
        pending_invite_code: str | None = None,
        pending_inviter_id: str | None = None,
        prefill_address: str | None = None,
        selected_community: str | None = None,
    ) -> str | None:
        """
        Capture where the visitor is before sending them to authenticate.

        Args:
            path: Current path (may already include a query string)
            query: Query string to append, without the leading "?"

        Returns:
            Continuation token, or None if there was nothing worth carrying
        """
        full_path = path
        if path and query:
            full_path = f"{path}&{query}" if "?" in path else f"{path}?{query}"

        if full_path and not self.is_valid_return_path(full_path):
            logger.warning(
                "Discarding invalid return path",
                extra={"return_path": full_path, "error_type": "invalid_return_path"},
            )
            full_path = None

        payload = ContinuationPayload(
            return_path=full_path,
            pending_invite_code=pending_invite_code,
            pending_inviter_id=pending_inviter_id,
            prefill_address=prefill_address,
            selected_community=selected_community,
        )
        if payload.is_empty:
            return None
        return self.continuations.issue(payload)

    def consume_return_path(self, token: str | None) -> str | None:
        """Read and clear the return path carried by a continuation token."""
        payload = self.continuations.consume(token)
        if payload is None or not self.is_valid_return_path(payload.return_path):
            return None
        return payload.return_path

    def decide(self, return_path: str | None, community: ResolvedCommunity) -> LandingDecision:
        """
        Pick the single navigation target after onboarding.

        A valid return path is resumed exactly when it belongs to the resolved
        community (or names no community). A return path into another
        community is dropped in favour of the resolved community's landing
        page, with a notice.
        """
        default = LandingDecision(target=landing_path(community.slug), community=community.slug)

        if not return_path or not self.is_valid_return_path(return_path):
            return default

        path_community = self.extract_community_from_path(return_path)
        if path_community is None or same_community(path_community, community.slug):
            return LandingDecision(target=return_path, community=community.slug, resumed=True)

        logger.info(
            f"Return path community {path_community} differs from {community.slug}",
            extra={"return_path": return_path, "resolved_community": community.slug},
        )
        return LandingDecision(
            target=landing_path(community.slug),
            community=community.slug,
            mismatch=True,
            notice=mismatch_notice(community.display_name),
        )


def with_query_param(path: str, key: str, value: str) -> str:
    """Add or replace one query parameter, keeping the others in order."""
    parts = urlsplit(path)
    params = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != key]
    params.append((key, value))
    return f"{parts.path}?{urlencode(params)}"
