"""Tests for the sign-in magic-link endpoint."""

import pytest

from src.neighbors.services.auth.exceptions import ProviderError
from src.neighbors.services.database import TransientStoreError

MAGIC_LINK_URL = "/api/v1/auth/magic-link"


class TestMagicLinkEndpoint:
    def test_approved_resident_gets_link_to_own_community(self, api_client, engine):
        engine.profiles.add(email="jane@example.com", signup_source="community:the-oaks")
        engine.profiles.email_statuses["jane@example.com"] = "approved"

        response = api_client.post(MAGIC_LINK_URL, json={"email": "Jane@Example.com", "community": "south-bay"})

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "magic-link-sent"
        assert data["state"] == "authenticating"
        assert data["community"] == "the-oaks"
        assert engine.provider.magic_links == [
            ("jane@example.com", "http://localhost:5173/communities/the-oaks?welcome=true")
        ]

    def test_pending_resident_told_to_wait(self, api_client, engine):
        engine.profiles.email_statuses["waiting@example.com"] = "pending"

        response = api_client.post(MAGIC_LINK_URL, json={"email": "waiting@example.com"})

        assert response.status_code == 200
        assert response.json()["kind"] == "pending-review"
        assert engine.provider.magic_links == []

    def test_unknown_email_pointed_at_signup(self, api_client, engine):
        response = api_client.post(MAGIC_LINK_URL, json={"email": "nobody@example.com", "community": "the-oaks"})

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "no-account-for-signin"
        assert data["target"] == "/auth?community=the-oaks"

    def test_provider_refusal_is_an_outcome(self, api_client, engine, monkeypatch):
        engine.profiles.add(email="jane@example.com")
        engine.profiles.email_statuses["jane@example.com"] = "approved"

        def refuse(email, redirect_to):
            raise ProviderError("Email rate limit exceeded")

        monkeypatch.setattr(engine.provider, "send_magic_link", refuse)

        response = api_client.post(MAGIC_LINK_URL, json={"email": "jane@example.com"})

        assert response.status_code == 200
        assert response.json()["kind"] == "provider-rejected"

    def test_store_unavailable_is_503(self, api_client, engine):
        engine.profiles.fail_with = TransientStoreError("timeout")

        response = api_client.post(MAGIC_LINK_URL, json={"email": "jane@example.com"})

        assert response.status_code == 503

    @pytest.mark.parametrize("email", ["", "not-an-email", "jane@localhost"])
    def test_invalid_email_rejected(self, api_client, email):
        response = api_client.post(MAGIC_LINK_URL, json={"email": email})

        assert response.status_code == 422
