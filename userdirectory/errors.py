"""Error taxonomy shared by the API, the service layer and the client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class FieldViolation:
    """A single field-level validation failure."""

    path: str
    message: str

    def as_dict(self) -> dict:
        return {"path": self.path, "message": self.message}


class UserDirectoryError(Exception):
    """Base class for every error raised by the user directory."""


class UserValidationError(UserDirectoryError, ValueError):
    """Raised when a payload fails schema validation."""

    def __init__(self, errors: Iterable[FieldViolation]) -> None:
        self.errors: List[FieldViolation] = list(errors)
        summary = "; ".join(f"{item.path or '<payload>'}: {item.message}" for item in self.errors)
        super().__init__(f"Validation error ({summary})" if summary else "Validation error")


class UserNotFoundError(UserDirectoryError, LookupError):
    """Raised when a user id does not resolve to a stored record."""

    def __init__(self, user_id: int | None = None) -> None:
        self.user_id = user_id
        message = "User not found" if user_id is None else f"User {user_id} not found"
        super().__init__(message)


class DuplicateEmailError(UserDirectoryError):
    """Raised when a mutation would violate the unique email constraint."""

    def __init__(self, email: Optional[str] = None) -> None:
        self.email = email
        super().__init__("Email already exists")


class StorageError(UserDirectoryError, RuntimeError):
    """Raised when the storage engine fails for reasons other than a conflict."""


class APIRequestError(UserDirectoryError):
    """Raised by the client when the API call fails without a mapped outcome."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "APIRequestError",
    "DuplicateEmailError",
    "FieldViolation",
    "StorageError",
    "UserDirectoryError",
    "UserNotFoundError",
    "UserValidationError",
]
