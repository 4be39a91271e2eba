"""Tests for the email-status oracle and its endpoint."""

import pytest

from src.neighbors.features.email_status.models import EmailStatus
from src.neighbors.services.database import TransientStoreError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("approved", EmailStatus.APPROVED),
        ("pending", EmailStatus.PENDING_REVIEW),
        ("not_found", EmailStatus.UNREGISTERED),
    ],
)
def test_rpc_statuses_are_mapped(engine, raw, expected):
    engine.profiles.email_statuses["a@example.com"] = raw

    assert engine.oracle.classify("A@Example.com ") == expected


def test_falls_back_to_profile_lookup(engine):
    engine.profiles.add(email="approved@example.com", is_verified=True)
    engine.profiles.add(email="waiting@example.com", is_verified=False)

    assert engine.oracle.classify("approved@example.com") == EmailStatus.APPROVED
    assert engine.oracle.classify("waiting@example.com") == EmailStatus.PENDING_REVIEW
    assert engine.oracle.classify("nobody@example.com") == EmailStatus.UNREGISTERED


def test_unexpected_rpc_value_uses_profile(engine):
    engine.profiles.email_statuses["a@example.com"] = "banana"

    assert engine.oracle.classify("a@example.com") == EmailStatus.UNREGISTERED


def test_store_failure_propagates_from_classify(engine):
    engine.profiles.fail_with = TransientStoreError("timeout")

    with pytest.raises(TransientStoreError):
        engine.oracle.classify("a@example.com")
    assert engine.oracle.classify_or_none("a@example.com") is None


class TestEmailStatusEndpoint:
    def test_returns_normalized_status(self, api_client, engine):
        engine.profiles.email_statuses["existing@example.com"] = "approved"

        response = api_client.get("/api/v1/auth/email-status", params={"email": " Existing@Example.com"})

        assert response.status_code == 200
        assert response.json() == {"email": "existing@example.com", "status": "approved"}

    def test_store_unavailable_is_503(self, api_client, engine):
        engine.profiles.fail_with = TransientStoreError("timeout")

        response = api_client.get("/api/v1/auth/email-status", params={"email": "a@example.com"})

        assert response.status_code == 503

    def test_email_required(self, api_client):
        response = api_client.get("/api/v1/auth/email-status")

        assert response.status_code == 422
