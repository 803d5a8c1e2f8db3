"""HTTP client used by front ends to talk to the user directory API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote_plus

import httpx

from .errors import (
    APIRequestError,
    DuplicateEmailError,
    FieldViolation,
    UserNotFoundError,
    UserValidationError,
)
from .models import User, UserRole, UserStatus
from .schemas import validate_user_payload

AVATAR_URL_TEMPLATE = "https://ui-avatars.com/api/?name={name}"


def default_avatar_url(name: str) -> str:
    """Return the generated placeholder avatar URL for ``name``."""

    return AVATAR_URL_TEMPLATE.format(name=quote_plus(name.strip()))


def apply_default_avatar(payload: Mapping[str, Any], *, partial: bool = False) -> Dict[str, Any]:
    """Fill an empty avatar with the generated placeholder for the payload's name.

    Partial payloads only get a placeholder when they explicitly carry an
    empty avatar, so an update that leaves the avatar out keeps the stored one.
    """

    prepared = dict(payload)
    name = prepared.get("name")
    if not isinstance(name, str) or not name.strip():
        return prepared
    if partial and "avatar" not in prepared:
        return prepared

    avatar = prepared.get("avatar")
    if avatar is None or (isinstance(avatar, str) and not avatar.strip()):
        prepared["avatar"] = default_avatar_url(name)
    return prepared


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return default


def _parse_violations(payload: object) -> List[FieldViolation]:
    if not isinstance(payload, dict):
        return []
    violations: List[FieldViolation] = []
    for item in payload.get("errors") or []:
        if isinstance(item, dict):
            violations.append(
                FieldViolation(path=str(item.get("path", "")), message=str(item.get("message", "")))
            )
    return violations


def _parse_timestamp(value: object) -> datetime:
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def user_from_payload(data: Mapping[str, Any]) -> User:
    try:
        return User(
            id=int(data["id"]),
            name=str(data["name"]),
            email=str(data["email"]),
            avatar=data.get("avatar"),
            role=UserRole(data["role"]),
            status=UserStatus(data["status"]),
            created_at=_parse_timestamp(data["createdAt"]),
            updated_at=_parse_timestamp(data["updatedAt"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise APIRequestError("User directory API returned an invalid user payload") from exc


class UserAPIClient:
    """Data-access shim wrapping the ``/api/users`` endpoints.

    Create and update payloads go through the same schema the server uses, so
    invalid input is reported without a round trip. An ``http_client`` may be
    supplied (for example a FastAPI ``TestClient``); otherwise one is created
    and owned by this instance.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._timeout = timeout

    def __enter__(self) -> "UserAPIClient":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _url(self, user_id: Optional[int] = None) -> str:
        base = f"{self._base_url}/api/users"
        return base if user_id is None else f"{base}/{user_id}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        json: object = None,
        user_id: Optional[int] = None,
        email: Optional[str] = None,
    ) -> httpx.Response:
        try:
            response = self._http.request(method, url, json=json, timeout=self._timeout)
        except httpx.RequestError as exc:
            raise APIRequestError(f"Failed to contact user directory API: {exc}") from exc

        if response.status_code < 400:
            return response

        try:
            parsed: object = response.json()
        except ValueError:
            parsed = None

        message = _extract_error_message(
            parsed,
            f"User directory API request failed with status {response.status_code}",
        )

        if response.status_code == 400:
            violations = _parse_violations(parsed)
            if violations:
                raise UserValidationError(violations)
        if response.status_code == 404:
            raise UserNotFoundError(user_id)
        if response.status_code == 409:
            raise DuplicateEmailError(email)

        raise APIRequestError(message, status_code=response.status_code)

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise APIRequestError(
                "User directory API returned an invalid response",
                status_code=response.status_code,
            ) from exc

    def list_users(self) -> List[User]:
        payload = self._json(self._request("GET", self._url()))
        if not isinstance(payload, list):
            raise APIRequestError("User directory API returned an unexpected response payload")
        return [user_from_payload(item) for item in payload]

    def get_user(self, user_id: int) -> User:
        response = self._request("GET", self._url(user_id), user_id=user_id)
        return user_from_payload(self._json(response))

    def create_user(self, payload: Mapping[str, Any]) -> User:
        prepared = apply_default_avatar(payload)
        body = validate_user_payload(prepared)
        response = self._request("POST", self._url(), json=body, email=body.get("email"))
        return user_from_payload(self._json(response))

    def update_user(self, user_id: int, payload: Mapping[str, Any]) -> User:
        prepared = apply_default_avatar(payload, partial=True)
        body = validate_user_payload(prepared, partial=True)
        response = self._request(
            "PUT",
            self._url(user_id),
            json=body,
            user_id=user_id,
            email=body.get("email"),
        )
        return user_from_payload(self._json(response))

    def delete_user(self, user_id: int) -> None:
        self._request("DELETE", self._url(user_id), user_id=user_id)


__all__ = [
    "AVATAR_URL_TEMPLATE",
    "UserAPIClient",
    "apply_default_avatar",
    "default_avatar_url",
    "user_from_payload",
]
