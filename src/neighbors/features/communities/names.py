"""Community slugs and display names."""

import re

DEFAULT_COMMUNITY_SLUG = "boca-bridges"

# URL slug -> display name
COMMUNITY_NAMES: dict[str, str] = {
    "boca-bridges": "Boca Bridges",
    "the-bridges": "The Bridges",
    "bridges": "The Bridges",
    "the-oaks": "The Oaks",
    "oaks": "The Oaks",
    "woodfield-country-club": "Woodfield Country Club",
    "woodfield": "Woodfield Country Club",
}


def to_slug(name: str) -> str:
    """
    Turn a community name or slug into its URL slug.

    Example:
        >>> to_slug("Boca Bridges")
        'boca-bridges'
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower())
    return slug.strip("-")


def display_name_for(slug_or_name: str | None) -> str:
    """Display name for a slug; unknown communities are title-cased from the slug."""
    if not slug_or_name:
        return COMMUNITY_NAMES[DEFAULT_COMMUNITY_SLUG]
    slug = to_slug(slug_or_name)
    if slug in COMMUNITY_NAMES:
        return COMMUNITY_NAMES[slug]
    return " ".join(part.capitalize() for part in slug.split("-") if part)


def canonical_slug(slug_or_name: str) -> str:
    """
    Slug of the canonical community for a name or one of its variations.

    "oaks", "The Oaks" and "the-oaks" all resolve to "the-oaks".
    """
    slug = to_slug(slug_or_name)
    display = COMMUNITY_NAMES.get(slug)
    if display is None:
        return slug
    return to_slug(display)


def same_community(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return canonical_slug(a) == canonical_slug(b)
