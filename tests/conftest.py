import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-chat-api-suite")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-chat.db")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from chat_api.db.migrations.runner import MigrationRunner
from chat_api.db.session import Database
from chat_api.main import create_application
from chat_api.repositories.message_repository import MessageRepository
from chat_api.repositories.user_repository import UserRepository
from chat_api.services.auth_service import AuthService


def _sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture()
async def database(tmp_path):
    """A migrated, file-backed SQLite database private to the test."""
    db = Database(_sqlite_url(tmp_path / "chat.db"), echo=False)
    await MigrationRunner(db).run()
    yield db
    await db.dispose()


@pytest.fixture()
def users(database):
    return UserRepository(database)


@pytest.fixture()
def messages(database):
    return MessageRepository(database)


@pytest.fixture()
def auth_service(users):
    return AuthService(users)


@pytest.fixture()
def client(tmp_path):
    """A test client whose lifespan runs against a fresh database."""
    app = create_application(_sqlite_url(tmp_path / "api.db"))
    with TestClient(app) as test_client:
        yield test_client


def register(client, username="alice", email=None, password="secret123"):
    """Register through the API and return (user json, auth headers)."""
    res = client.post(
        "/auth/register",
        json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
        },
    )
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture()
def alice(client):
    return register(client, "alice")


@pytest.fixture()
def bob(client):
    return register(client, "bob")
