import json

import pytest
from starlette.requests import Request

from chat_api.core.exceptions import PermissionDeniedError, ValidationError
from chat_api.dependencies import require_ownership
from chat_api.services.auth_service import Identity

CALLER = Identity(user_id="u1", username="alice", email="alice@example.com")


def make_request(path_params=None, body=None, query=b""):
    payload = json.dumps(body).encode() if body is not None else b""

    async def receive():
        return {"type": "http.request", "body": payload, "more_body": False}

    scope = {
        "type": "http",
        "method": "POST" if body is not None else "GET",
        "path": "/resource",
        "headers": [(b"content-type", b"application/json")],
        "query_string": query,
        "path_params": path_params or {},
    }
    return Request(scope, receive)


async def test_missing_owner_field_is_a_validation_error():
    check = require_ownership("owner")
    with pytest.raises(ValidationError) as exc_info:
        await check(make_request(), CALLER)
    assert exc_info.value.code == "MISSING_RESOURCE_USER_ID"
    assert exc_info.value.status_code == 400


async def test_owner_from_path_body_or_query():
    check = require_ownership("owner")
    assert await check(make_request(path_params={"owner": "u1"}), CALLER) == CALLER
    assert await check(make_request(body={"owner": "u1"}), CALLER) == CALLER
    assert await check(make_request(query=b"owner=u1"), CALLER) == CALLER


async def test_foreign_owner_is_denied():
    check = require_ownership("owner")
    with pytest.raises(PermissionDeniedError):
        await check(make_request(path_params={"owner": "u2"}), CALLER)
    with pytest.raises(PermissionDeniedError):
        await check(make_request(body={"owner": "u2"}), CALLER)
