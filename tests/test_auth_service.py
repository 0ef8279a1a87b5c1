import pytest

from chat_api.core.exceptions import AuthError, ConflictError, NotFoundError
from chat_api.core.security import create_access_token


async def test_register_issues_token_for_new_user(auth_service):
    user, token = await auth_service.register("alice", "alice@example.com", "secret123")
    claims = auth_service.verify_token(token)
    assert claims.user_id == user.id
    assert claims.username == "alice"
    assert user.is_online is False


async def test_register_reports_which_field_is_taken(auth_service):
    await auth_service.register("alice", "alice@example.com", "secret123")

    with pytest.raises(ConflictError, match="Email already registered"):
        await auth_service.register("alice2", "alice@example.com", "secret123")
    with pytest.raises(ConflictError, match="Username already taken"):
        await auth_service.register("alice", "other@example.com", "secret123")


async def test_login_marks_user_online(auth_service, users):
    user, _ = await auth_service.register("alice", "alice@example.com", "secret123")
    logged_in, token = await auth_service.login("alice@example.com", "secret123")

    assert logged_in.is_online is True
    assert auth_service.verify_token(token).user_id == user.id

    await auth_service.logout(user.id)
    assert (await users.find_by_id(user.id)).is_online is False


async def test_login_failures_look_the_same(auth_service, users):
    user, _ = await auth_service.register("alice", "alice@example.com", "secret123")

    with pytest.raises(AuthError) as wrong_password:
        await auth_service.login("alice@example.com", "bad-password")
    with pytest.raises(AuthError) as unknown_email:
        await auth_service.login("nobody@example.com", "secret123")

    assert wrong_password.value.code == unknown_email.value.code == "INVALID_CREDENTIALS"
    assert wrong_password.value.message == unknown_email.value.message
    assert (await users.find_by_id(user.id)).is_online is False


async def test_resolve_identity_errors(auth_service):
    with pytest.raises(AuthError) as missing:
        await auth_service.resolve_identity(None)
    assert missing.value.code == "MISSING_TOKEN"

    with pytest.raises(AuthError) as invalid:
        await auth_service.resolve_identity("not-a-token")
    assert invalid.value.code == "INVALID_TOKEN"

    orphan = create_access_token("ghost-id", "ghost", "ghost@example.com")
    with pytest.raises(AuthError) as gone:
        await auth_service.resolve_identity(orphan)
    assert gone.value.code == "USER_NOT_FOUND"


async def test_resolve_identity_for_valid_token(auth_service):
    user, token = await auth_service.register("alice", "alice@example.com", "secret123")
    identity = await auth_service.resolve_identity(token)
    assert identity.user_id == user.id
    assert identity.email == "alice@example.com"


async def test_change_password(auth_service):
    user, _ = await auth_service.register("alice", "alice@example.com", "secret123")

    with pytest.raises(AuthError):
        await auth_service.change_password(user.id, "wrong-current", "new-secret")

    await auth_service.change_password(user.id, "secret123", "new-secret")
    await auth_service.login("alice@example.com", "new-secret")
    with pytest.raises(AuthError):
        await auth_service.login("alice@example.com", "secret123")


async def test_profile_of_unknown_user(auth_service):
    with pytest.raises(NotFoundError):
        await auth_service.get_profile("missing")
