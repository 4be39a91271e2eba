"""Tests for community names and address helpers."""

import pytest

from src.neighbors.features.communities.address import (
    extract_street_name,
    is_usable_address,
    normalize_address_locally,
    starts_with_house_number,
)
from src.neighbors.features.communities.names import (
    canonical_slug,
    display_name_for,
    same_community,
    to_slug,
)


def test_to_slug():
    assert to_slug("Woodfield Country Club") == "woodfield-country-club"
    assert to_slug("  The Oaks! ") == "the-oaks"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("woodfield", "Woodfield Country Club"),
        ("Boca Bridges", "Boca Bridges"),
        ("palm-grove", "Palm Grove"),
        (None, "Boca Bridges"),
    ],
)
def test_display_name_for(value, expected):
    assert display_name_for(value) == expected


def test_name_variations_share_a_canonical_slug():
    assert canonical_slug("oaks") == "the-oaks"
    assert canonical_slug("The Oaks") == "the-oaks"
    assert canonical_slug("bridges") == "the-bridges"
    assert canonical_slug("north-park") == "north-park"


def test_same_community():
    assert same_community("The Oaks", "oaks") is True
    assert same_community("north-park", "south-bay") is False
    assert same_community(None, "north-park") is False


@pytest.mark.parametrize(
    ("address", "street"),
    [
        ("1234 N Main St Apt 5, Boca Raton, FL", "N Main St"),
        ("12 Oak Ln #4", "Oak Ln"),
        ("Sunset Blvd", "Sunset Blvd"),
        (None, ""),
    ],
)
def test_extract_street_name(address, street):
    assert extract_street_name(address) == street


def test_normalize_address_locally():
    assert normalize_address_locally("  123 Oak St.,  Apt #4 ") == "123 oak st apt 4"


def test_address_checks():
    assert is_usable_address("123 Oak St") is True
    assert is_usable_address("Address Not Provided") is False
    assert is_usable_address("   ") is False
    assert starts_with_house_number("123 Oak St") is True
    assert starts_with_house_number("Oak St") is False
