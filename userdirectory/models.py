"""Domain models for the user directory."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class User:
    """Represents a user record stored in the directory database."""

    id: int
    name: str
    email: str
    avatar: Optional[str]
    role: UserRole
    status: UserStatus
    created_at: datetime
    updated_at: datetime


__all__ = ["User", "UserRole", "UserStatus"]
