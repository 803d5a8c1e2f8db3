"""Validation schema for user payloads.

The same functions are used by the HTTP API before anything reaches storage
and by :mod:`userdirectory.client` before a request is sent, so the rules
below are the single source of truth for what a valid user looks like.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic_core import PydanticCustomError

from .errors import FieldViolation, UserValidationError
from .models import UserRole, UserStatus

NAME_MIN_LENGTH = 2

_FIELD_LABELS = {
    "name": "Name",
    "email": "Email",
    "avatar": "Avatar",
    "role": "Role",
    "status": "Status",
}

_url_adapter = TypeAdapter(AnyUrl)


def _enum_value(value: object, enum_cls, message: str) -> object:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value)
        except ValueError:
            pass
    raise PydanticCustomError("enum_choice", message)


class UserCreate(BaseModel):
    """Full variant: every required field must be present."""

    model_config = ConfigDict(extra="ignore")

    name: str
    email: str
    avatar: Optional[str] = None
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.ACTIVE

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) < NAME_MIN_LENGTH:
            raise PydanticCustomError(
                "name_too_short",
                "Name must be at least 2 characters long",
            )
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as exc:
            raise PydanticCustomError("invalid_email", "Invalid email address") from exc
        return value

    @field_validator("avatar")
    @classmethod
    def _check_avatar(cls, value: Optional[str]) -> Optional[str]:
        # Empty avatars are stored verbatim; only non-empty values must parse.
        if value is None or not value.strip():
            return value
        try:
            _url_adapter.validate_python(value)
        except ValidationError as exc:
            raise PydanticCustomError("invalid_url", "Avatar must be a valid URL") from exc
        return value

    @field_validator("role", mode="before")
    @classmethod
    def _check_role(cls, value: object) -> object:
        return _enum_value(value, UserRole, "Role must be admin or user")

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, value: object) -> object:
        return _enum_value(value, UserStatus, "Status must be active or inactive")


class UserUpdate(UserCreate):
    """Partial variant: only supplied fields are validated, no defaults injected."""

    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None

    @field_validator("name", "email", "role", "status", mode="before")
    @classmethod
    def _reject_null(cls, value: object, info: ValidationInfo) -> object:
        if value is None:
            label = _FIELD_LABELS.get(info.field_name, info.field_name)
            raise PydanticCustomError("null_value", f"{label} must not be null")
        return value


def _violation_message(error: Mapping[str, Any]) -> str:
    if error.get("type") == "missing":
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else ""
        return f"{_FIELD_LABELS.get(field, field or 'Value')} is required"
    return str(error.get("msg", "Invalid value"))


def _to_violations(exc: ValidationError) -> List[FieldViolation]:
    return [
        FieldViolation(
            path=".".join(str(part) for part in error.get("loc", ())),
            message=_violation_message(error),
        )
        for error in exc.errors()
    ]


def validate_user_payload(payload: object, *, partial: bool = False) -> Dict[str, Any]:
    """Return the normalised field set for ``payload`` or raise ``UserValidationError``.

    With ``partial=False`` the create rules apply and ``role``/``status`` are
    filled with their defaults. With ``partial=True`` only the keys present in
    ``payload`` are checked and returned.
    """

    schema = UserUpdate if partial else UserCreate
    try:
        model = schema.model_validate(payload)
    except ValidationError as exc:
        raise UserValidationError(_to_violations(exc)) from exc

    return model.model_dump(mode="json", exclude_unset=partial)


__all__ = ["NAME_MIN_LENGTH", "UserCreate", "UserUpdate", "validate_user_payload"]
