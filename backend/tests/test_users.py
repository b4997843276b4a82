"""Unit tests for authentication, profile and username endpoints."""

from datetime import timedelta

from fastapi.testclient import TestClient

from studyhub.core.security import create_access_token


def _bearer(claims: dict, **kwargs) -> dict:
    return {"Authorization": f"Bearer {create_access_token(claims, **kwargs)}"}


def test_first_request_creates_local_user(client: TestClient):
    """Test a new identity-provider subject gets a local profile."""
    h = _bearer(
        {
            "sub": "idp|ada",
            "email": "ada@example.com",
            "given_name": "Ada",
            "family_name": "Lovelace",
        }
    )
    first = client.get("/api/users/me", headers=h)
    assert first.status_code == 200
    data = first.json()
    assert data["email"] == "ada@example.com"
    assert data["display_name"] == "Ada Lovelace"
    assert data["username"] is None

    second = client.get("/api/users/me", headers=h)
    assert second.json()["id"] == data["id"]


def test_missing_token(client: TestClient):
    """Test requests without a bearer token are rejected."""
    response = client.get("/api/users/me")
    assert response.status_code == 401


def test_invalid_token(client: TestClient):
    """Test a token signed with another key is rejected."""
    response = client.get(
        "/api/users/me", headers={"Authorization": "Bearer not.a.jwt"}
    )
    assert response.status_code == 401


def test_expired_token(client: TestClient):
    """Test expired tokens are rejected."""
    h = _bearer({"sub": "idp|late"}, expires_delta=timedelta(minutes=-5))
    assert client.get("/api/users/me", headers=h).status_code == 401


def test_inactive_user_rejected(client: TestClient, make_user, headers):
    """Test deactivated users cannot authenticate."""
    user = make_user("ghost", is_active=False)
    assert client.get("/api/users/me", headers=headers(user)).status_code == 401


def test_update_profile(client: TestClient, make_user, headers):
    """Test updating first and last name."""
    h = headers(make_user())
    response = client.patch(
        "/api/users/me", json={"first_name": " Grace ", "last_name": "Hopper"}, headers=h
    )
    assert response.status_code == 200
    assert response.json()["display_name"] == "Grace Hopper"


def test_set_username(client: TestClient, make_user, headers):
    """Test usernames are validated and stored lower-case."""
    h = headers(make_user())
    response = client.post("/api/users/set-username", json={"username": "Study_Buddy"}, headers=h)
    assert response.status_code == 200
    assert response.json()["username"] == "study_buddy"
    assert response.json()["display_name"] == "study_buddy"


def test_set_username_invalid(client: TestClient, make_user, headers):
    """Test invalid usernames are rejected."""
    h = headers(make_user())
    for bad in ("ab", "has space", "x" * 21, "dash-ed"):
        response = client.post("/api/users/set-username", json={"username": bad}, headers=h)
        assert response.status_code == 400, bad
        assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_set_username_taken(client: TestClient, make_user, headers):
    """Test a username held by someone else cannot be taken."""
    make_user("taken_name")
    h = headers(make_user())
    response = client.post("/api/users/set-username", json={"username": "Taken_Name"}, headers=h)
    assert response.status_code == 409


def test_check_username(client: TestClient, make_user, headers):
    """Test availability check, including the caller's own username."""
    me = make_user("mine")
    make_user("theirs")
    h = headers(me)

    assert client.get("/api/users/check-username/fresh", headers=h).json()["available"] is True
    assert client.get("/api/users/check-username/Theirs", headers=h).json()["available"] is False
    assert client.get("/api/users/check-username/mine", headers=h).json()["available"] is True


def test_health_and_root(client: TestClient):
    """Test the unauthenticated service endpoints."""
    assert client.get("/health").json()["status"] == "healthy"
    root = client.get("/").json()
    assert root["name"] == "StudyHub API"
    assert root["docs"] == "/docs"
