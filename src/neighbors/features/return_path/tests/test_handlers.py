"""Tests for the continuation API handler."""


def test_create_continuation(api_client, engine):
    response = api_client.post(
        "/api/v1/auth/continuation",
        json={"return_path": "/communities/north-park?category=plumbing", "pending_invite_code": "ABC123"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["return_path_accepted"] is True
    assert data["expires_in"] == 900
    payload = engine.continuations.peek(data["continuation"])
    assert payload.return_path == "/communities/north-park?category=plumbing"
    assert payload.pending_invite_code == "ABC123"


def test_open_redirect_rejected(api_client):
    response = api_client.post("/api/v1/auth/continuation", json={"return_path": "https://evil.example.com"})

    assert response.status_code == 200
    assert response.json() == {"continuation": None, "expires_in": 900, "return_path_accepted": False}
