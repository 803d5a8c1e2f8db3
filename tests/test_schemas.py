from __future__ import annotations

import pytest

from userdirectory.errors import UserValidationError
from userdirectory.schemas import validate_user_payload


def _paths(exc: UserValidationError) -> set[str]:
    return {violation.path for violation in exc.errors}


def test_full_payload_applies_role_and_status_defaults() -> None:
    fields = validate_user_payload({"name": "Ana Silva", "email": "ana@x.com"})

    assert fields == {
        "name": "Ana Silva",
        "email": "ana@x.com",
        "avatar": None,
        "role": "user",
        "status": "active",
    }


def test_full_payload_reports_every_missing_field() -> None:
    with pytest.raises(UserValidationError) as excinfo:
        validate_user_payload({"role": "admin"})

    assert _paths(excinfo.value) == {"name", "email"}
    messages = {violation.path: violation.message for violation in excinfo.value.errors}
    assert messages["name"] == "Name is required"
    assert messages["email"] == "Email is required"


@pytest.mark.parametrize(
    ("payload", "path", "message"),
    [
        ({"name": "A", "email": "ana@x.com"}, "name", "Name must be at least 2 characters long"),
        ({"name": "Ana", "email": "not-an-email"}, "email", "Invalid email address"),
        ({"name": "Ana", "email": "ana@x.com", "avatar": "not a url"}, "avatar", "Avatar must be a valid URL"),
        ({"name": "Ana", "email": "ana@x.com", "role": "owner"}, "role", "Role must be admin or user"),
        ({"name": "Ana", "email": "ana@x.com", "status": "gone"}, "status", "Status must be active or inactive"),
    ],
)
def test_invalid_values_produce_field_level_messages(payload, path, message) -> None:
    with pytest.raises(UserValidationError) as excinfo:
        validate_user_payload(payload)

    assert [(v.path, v.message) for v in excinfo.value.errors] == [(path, message)]


def test_empty_avatar_is_kept_verbatim() -> None:
    fields = validate_user_payload({"name": "Ana", "email": "ana@x.com", "avatar": ""})
    assert fields["avatar"] == ""


def test_valid_avatar_url_is_not_rewritten() -> None:
    avatar = "https://ui-avatars.com/api/?name=Ana+Silva"
    fields = validate_user_payload({"name": "Ana", "email": "ana@x.com", "avatar": avatar})
    assert fields["avatar"] == avatar


@pytest.mark.parametrize("avatar", ["ftp://x.com/a.png", "s3://bucket/avatars/ana.png"])
def test_avatar_accepts_any_absolute_url(avatar) -> None:
    fields = validate_user_payload({"name": "Ana", "email": "ana@x.com", "avatar": avatar})
    assert fields["avatar"] == avatar


def test_unknown_and_system_fields_are_dropped() -> None:
    fields = validate_user_payload(
        {
            "id": 42,
            "name": "Ana",
            "email": "ana@x.com",
            "createdAt": "2020-01-01T00:00:00Z",
            "nickname": "ana",
        }
    )
    assert set(fields) == {"name", "email", "avatar", "role", "status"}


def test_partial_payload_only_returns_supplied_fields() -> None:
    assert validate_user_payload({"status": "inactive"}, partial=True) == {"status": "inactive"}
    assert validate_user_payload({}, partial=True) == {}


def test_partial_payload_still_rejects_invalid_values() -> None:
    with pytest.raises(UserValidationError) as excinfo:
        validate_user_payload({"email": "broken", "name": "X"}, partial=True)

    assert _paths(excinfo.value) == {"email", "name"}


def test_partial_payload_rejects_null_for_required_fields() -> None:
    with pytest.raises(UserValidationError) as excinfo:
        validate_user_payload({"name": None}, partial=True)

    assert _paths(excinfo.value) == {"name"}


def test_partial_payload_allows_clearing_the_avatar() -> None:
    assert validate_user_payload({"avatar": None}, partial=True) == {"avatar": None}


def test_non_object_payload_is_rejected() -> None:
    with pytest.raises(UserValidationError) as excinfo:
        validate_user_payload(["Ana", "ana@x.com"])

    assert _paths(excinfo.value) == {""}


def test_validation_is_pure() -> None:
    payload = {"name": "Ana", "email": "ana@x.com"}
    first = validate_user_payload(payload)
    second = validate_user_payload(payload)

    assert first == second
    assert payload == {"name": "Ana", "email": "ana@x.com"}
