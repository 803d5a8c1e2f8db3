from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from userdirectory.api import create_app
from userdirectory.client import UserAPIClient, apply_default_avatar, default_avatar_url
from userdirectory.config import Settings
from userdirectory.database import Database
from userdirectory.errors import (
    APIRequestError,
    DuplicateEmailError,
    UserNotFoundError,
    UserValidationError,
)
from userdirectory.models import UserRole


@pytest.fixture
def api_client(tmp_path: Path):
    db_path = tmp_path / "users.sqlite3"
    app = create_app(database=Database(db_path), settings=Settings(database_path=db_path))
    with TestClient(app) as http_client:
        yield UserAPIClient("http://testserver", http_client=http_client)


def _mock_client(handler) -> UserAPIClient:
    return UserAPIClient(
        "https://users.example.com/",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_default_avatar_url_embeds_the_name() -> None:
    assert default_avatar_url("Ana Silva") == "https://ui-avatars.com/api/?name=Ana+Silva"


def test_apply_default_avatar_rules() -> None:
    assert apply_default_avatar({"name": "Ana Silva"})["avatar"] == default_avatar_url("Ana Silva")
    assert apply_default_avatar({"name": "Ana Silva", "avatar": "  "})["avatar"] == default_avatar_url(
        "Ana Silva"
    )
    assert apply_default_avatar({"name": "Ana", "avatar": "https://a.example/x.png"})["avatar"] == (
        "https://a.example/x.png"
    )
    assert "avatar" not in apply_default_avatar({"name": "Ana"}, partial=True)
    assert apply_default_avatar({"avatar": ""}, partial=True) == {"avatar": ""}


def test_create_user_fills_missing_avatar(api_client: UserAPIClient) -> None:
    user = api_client.create_user({"name": "Ana Silva", "email": "ana@x.com", "avatar": ""})

    assert user.avatar == "https://ui-avatars.com/api/?name=Ana+Silva"
    assert user.role is UserRole.USER
    assert api_client.get_user(user.id) == user


def test_client_lifecycle(api_client: UserAPIClient) -> None:
    assert api_client.list_users() == []

    user = api_client.create_user({"name": "Ana Silva", "email": "ana@x.com"})
    updated = api_client.update_user(user.id, {"role": "admin"})

    assert updated.role is UserRole.ADMIN
    assert updated.avatar == user.avatar
    assert updated.updated_at > user.updated_at
    assert [item.id for item in api_client.list_users()] == [user.id]

    api_client.delete_user(user.id)

    with pytest.raises(UserNotFoundError):
        api_client.get_user(user.id)
    with pytest.raises(UserNotFoundError):
        api_client.delete_user(user.id)


def test_duplicate_email_maps_to_conflict(api_client: UserAPIClient) -> None:
    api_client.create_user({"name": "Ana Silva", "email": "ana@x.com"})

    with pytest.raises(DuplicateEmailError):
        api_client.create_user({"name": "Other Ana", "email": "ana@x.com"})


def test_invalid_payload_is_rejected_without_a_request() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    client = _mock_client(handler)

    with pytest.raises(UserValidationError) as excinfo:
        client.create_user({"name": "A", "email": "bad"})
    with pytest.raises(UserValidationError):
        client.update_user(1, {"role": "root"})

    assert {violation.path for violation in excinfo.value.errors} == {"name", "email"}
    assert calls == []


def test_server_validation_errors_are_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={"message": "Validation error", "errors": [{"path": "email", "message": "Invalid email address"}]},
        )

    with pytest.raises(UserValidationError) as excinfo:
        _mock_client(handler).create_user({"name": "Ana", "email": "ana@x.com"})

    assert excinfo.value.errors[0].path == "email"


def test_not_found_carries_the_requested_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "User not found"})

    client = _mock_client(handler)

    with pytest.raises(UserNotFoundError) as excinfo:
        client.get_user(7)
    assert excinfo.value.user_id == 7

    with pytest.raises(UserNotFoundError) as excinfo:
        client.update_user(7, {"name": "Ana Silva"})
    assert excinfo.value.user_id == 7

    with pytest.raises(UserNotFoundError) as excinfo:
        client.delete_user(7)
    assert excinfo.value.user_id == 7


def test_conflict_carries_the_submitted_email() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "Email already exists"})

    client = _mock_client(handler)

    with pytest.raises(DuplicateEmailError) as excinfo:
        client.create_user({"name": "Ana Silva", "email": "ana@x.com"})
    assert excinfo.value.email == "ana@x.com"

    with pytest.raises(DuplicateEmailError) as excinfo:
        client.update_user(3, {"email": "ana@x.com"})
    assert excinfo.value.email == "ana@x.com"


def test_server_error_becomes_api_request_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == httpx.URL("https://users.example.com/api/users")
        return httpx.Response(500, json={"message": "Internal server error"})

    with pytest.raises(APIRequestError) as excinfo:
        _mock_client(handler).list_users()

    assert excinfo.value.status_code == 500
    assert str(excinfo.value) == "Internal server error"


def test_transport_failure_becomes_api_request_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(APIRequestError) as excinfo:
        _mock_client(handler).get_user(1)

    assert excinfo.value.status_code is None


def test_rejects_empty_base_url() -> None:
    with pytest.raises(ValueError):
        UserAPIClient("  ")
