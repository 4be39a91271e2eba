"""Tests for profile models and signup-source parsing."""

from uuid import uuid4

import pytest

from src.neighbors.features.profiles.models import (
    CommunitySignup,
    DirectSignup,
    InviteSignup,
    ProfileCreate,
    UserProfile,
    parse_signup_source,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("community:boca-bridges", CommunitySignup(name="boca-bridges")),
        ("invite:ABC123", InviteSignup(code="ABC123")),
        (None, DirectSignup()),
        ("", DirectSignup()),
        ("community:", DirectSignup()),
        ("newsletter", DirectSignup()),
        ({"kind": "invite", "code": "XYZ"}, InviteSignup(code="XYZ")),
    ],
)
def test_parse_signup_source(raw, expected):
    assert parse_signup_source(raw) == expected


def test_signup_source_tags():
    assert CommunitySignup(name="the-oaks").to_tag() == "community:the-oaks"
    assert InviteSignup(code="ABC").to_tag() == "invite:ABC"
    assert DirectSignup().to_tag() is None


def test_user_profile_parses_stored_row():
    profile = UserProfile.model_validate(
        {
            "id": str(uuid4()),
            "email": "jane@example.com",
            "signup_source": "community:the-oaks",
            "points": None,
            "unrelated_column": "ignored",
        }
    )

    assert profile.signup_source == CommunitySignup(name="the-oaks")
    assert profile.points == 0
    assert profile.is_disabled is False


def test_only_explicit_false_disables():
    base = {"id": str(uuid4()), "email": "a@example.com"}

    assert UserProfile.model_validate({**base, "is_verified": False}).is_disabled is True
    assert UserProfile.model_validate({**base, "is_verified": None}).is_disabled is False
    assert UserProfile.model_validate({**base, "is_verified": True}).is_disabled is False


def test_profile_create_record_uses_tag_and_normalized_email():
    user_id = uuid4()
    record = ProfileCreate(
        id=user_id,
        email="  Jane@Example.COM ",
        name="Jane",
        signup_source="invite:CODE1",
        is_verified=True,
    ).to_record()

    assert record["id"] == str(user_id)
    assert record["email"] == "jane@example.com"
    assert record["signup_source"] == "invite:CODE1"
    assert record["is_verified"] is True
