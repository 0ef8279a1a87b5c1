from conftest import register


def test_list_users(client):
    register(client, "alice")
    register(client, "bob")

    res = client.get("/users")
    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 2
    assert {u["username"] for u in body["data"]} == {"alice", "bob"}
    assert all("passwordHash" not in u for u in body["data"])


def test_get_user(client):
    user, _ = register(client, "alice")
    res = client.get(f"/users/{user['id']}")
    assert res.status_code == 200
    assert res.json()["data"]["email"] == "alice@example.com"

    missing = client.get("/users/does-not-exist")
    assert missing.status_code == 404
    assert missing.json()["message"] == "User with ID: does-not-exist not found"


def test_create_user_without_token(client):
    res = client.post(
        "/users",
        json={"username": "dave", "email": "dave@example.com", "password": "secret123"},
    )
    assert res.status_code == 201
    assert "token" not in res.json()["data"]

    dup = client.post(
        "/users",
        json={"username": "dave", "email": "dave2@example.com", "password": "secret123"},
    )
    assert dup.status_code == 409
    assert dup.json()["message"] == "Username already taken"


def test_update_status(client):
    user, _ = register(client, "alice")
    res = client.patch(f"/users/{user['id']}/status", json={"isOnline": True})
    assert res.status_code == 200
    assert res.json()["data"]["isOnline"] is True
    assert res.json()["message"] == "User status updated to online"

    missing = client.patch("/users/nope/status", json={"isOnline": False})
    assert missing.status_code == 404


def test_unknown_route_uses_envelope(client):
    res = client.get("/nowhere")
    assert res.status_code == 404
    assert res.json()["success"] is False


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
