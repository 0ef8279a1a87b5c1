from fastapi.testclient import TestClient
from jose import jwt

from chat_api.main import create_application
from conftest import register


def test_register_requires_all_fields(client):
    res = client.post("/auth/register", json={"username": "alice"})
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["error"] == "VALIDATION_ERROR"


def test_register_rejects_bad_email(client):
    res = client.post(
        "/auth/register",
        json={"username": "alice", "email": "not-an-email", "password": "secret123"},
    )
    assert res.status_code == 400
    assert "Invalid email format" in res.json()["message"]


def test_register_rejects_short_password_and_bad_username(client):
    short = client.post(
        "/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": "123"},
    )
    assert short.status_code == 400

    bad_name = client.post(
        "/auth/register",
        json={"username": "a!", "email": "alice@example.com", "password": "secret123"},
    )
    assert bad_name.status_code == 400


def test_register_then_duplicate_conflicts(client):
    res = client.post(
        "/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": "secret123"},
    )
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    user = body["data"]["user"]
    assert user["username"] == "alice"
    assert user["isOnline"] is False
    assert "password" not in user and "passwordHash" not in user
    assert body["data"]["token"]
    assert body["data"]["expiresIn"] > 0

    again = client.post(
        "/auth/register",
        json={"username": "alice2", "email": "alice@example.com", "password": "secret123"},
    )
    assert again.status_code == 409
    assert again.json()["message"] == "Email already registered"


def test_login_returns_token_for_user(client):
    user, _ = register(client, "alice")
    res = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "secret123"}
    )
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["user"]["isOnline"] is True

    claims = jwt.get_unverified_claims(data["token"])
    assert claims["userId"] == user["id"]
    assert claims["username"] == "alice"


def test_wrong_password_is_401_and_presence_unchanged(client):
    _, headers = register(client, "alice")
    res = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"}
    )
    assert res.status_code == 401
    assert res.json()["error"] == "INVALID_CREDENTIALS"

    profile = client.get("/auth/profile", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["data"]["isOnline"] is False


def test_verify_token(client):
    user, headers = register(client, "alice")
    res = client.get("/auth/verify", headers=headers)
    assert res.status_code == 200
    assert res.json()["message"] == "Token is valid"
    assert res.json()["data"]["userId"] == user["id"]


def test_missing_and_invalid_tokens(client):
    missing = client.get("/auth/verify")
    assert missing.status_code == 401
    assert missing.json()["error"] == "MISSING_TOKEN"

    wrong_scheme = client.get("/auth/verify", headers={"Authorization": "Token abc"})
    assert wrong_scheme.json()["error"] == "MISSING_TOKEN"

    invalid = client.get("/auth/verify", headers={"Authorization": "Bearer abc.def.ghi"})
    assert invalid.status_code == 401
    assert invalid.json()["error"] == "INVALID_TOKEN"


def test_logout_marks_offline(client):
    _, headers = register(client, "alice")
    client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"})

    res = client.post("/auth/logout", headers=headers)
    assert res.status_code == 200
    assert client.get("/auth/profile", headers=headers).json()["data"]["isOnline"] is False


def test_change_password(client):
    _, headers = register(client, "alice")
    res = client.put(
        "/auth/change-password",
        headers=headers,
        json={"currentPassword": "secret123", "newPassword": "brand-new"},
    )
    assert res.status_code == 200
    assert res.json()["message"] == "Password changed successfully"

    old = client.post("/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert old.status_code == 401
    new = client.post("/auth/login", json={"email": "alice@example.com", "password": "brand-new"})
    assert new.status_code == 200


def test_change_password_is_rate_limited(client):
    _, headers = register(client, "carol")
    payload = {"currentPassword": "wrong-one", "newPassword": "brand-new"}

    for _ in range(5):
        res = client.put("/auth/change-password", headers=headers, json=payload)
        assert res.status_code == 401

    limited = client.put("/auth/change-password", headers=headers, json=payload)
    assert limited.status_code == 429
    body = limited.json()
    assert body["error"] == "RATE_LIMIT_EXCEEDED"
    assert body["retryAfter"] > 0
    assert int(limited.headers["Retry-After"]) == body["retryAfter"]


def test_rate_limit_counters_belong_to_the_app(client, tmp_path):
    _, headers = register(client, "dave")
    client.put(
        "/auth/change-password",
        headers=headers,
        json={"currentPassword": "wrong-one", "newPassword": "brand-new"},
    )
    assert len(client.app.state.change_password_limiter) == 1

    fresh = create_application(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")
    with TestClient(fresh):
        assert len(fresh.state.change_password_limiter) == 0
        assert fresh.state.change_password_limiter is not client.app.state.change_password_limiter
