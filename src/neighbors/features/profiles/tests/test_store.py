"""Tests for the profile store."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from src.neighbors.features.profiles.models import CommunitySignup, ProfileCreate
from src.neighbors.features.profiles.store import ProfileStore


@pytest.fixture
def db() -> MagicMock:
    return MagicMock()


@pytest.fixture
def store(db) -> ProfileStore:
    return ProfileStore(db)


def test_get_profile_by_email_normalizes(store, db):
    user_id = str(uuid4())
    db.get_by_field.return_value = {"id": user_id, "email": "jane@example.com"}

    profile = store.get_profile_by_email(" Jane@Example.com ")

    assert str(profile.id) == user_id
    db.get_by_field.assert_called_once_with("users", "email", "jane@example.com")


def test_get_profile_by_id_missing(store, db):
    db.get_by_id.return_value = None

    assert store.get_profile_by_id(uuid4()) is None


def test_create_profile_upserts_on_id(store, db):
    user_id = uuid4()
    db.upsert_record.return_value = None
    profile = ProfileCreate(id=user_id, email="jane@example.com", name="Jane", signup_source="community:the-oaks")

    created = store.create_profile(profile)

    assert created.id == user_id
    assert created.signup_source == CommunitySignup(name="the-oaks")
    table, record = db.upsert_record.call_args.args
    assert table == "users"
    assert record["signup_source"] == "community:the-oaks"
    assert db.upsert_record.call_args.kwargs == {"conflict_columns": ["id"]}


@pytest.mark.parametrize(("payload", "expected"), [("approved", "approved"), (["pending"], "pending"), (None, None), ([], None)])
def test_classify_email_unwraps_rpc_payload(store, db, payload, expected):
    db.rpc.return_value = payload

    assert store.classify_email("a@example.com") == expected
    db.rpc.assert_called_once_with("get_email_status", {"_email": "a@example.com"})


def test_fix_orphaned_profile_returns_first_row(store, db):
    user_id = str(uuid4())
    db.rpc.return_value = [{"created_record": True, "user_id": user_id}]

    result = store.fix_orphaned_profile("a@example.com", "A", "1 Oak St")

    assert result.created_record is True
    assert result.user_id == user_id
    assert result.error_message is None


def test_fix_orphaned_profile_empty(store, db):
    db.rpc.return_value = []

    assert store.fix_orphaned_profile("a@example.com") is None


def test_record_join_points(store, db):
    user_id = uuid4()

    store.record_join_points(user_id, 5)

    table, record = db.insert_record.call_args.args
    assert table == "user_point_history"
    assert record["user_id"] == str(user_id)
    assert record["points_earned"] == 5
    assert record["activity_type"] == "join_site"
