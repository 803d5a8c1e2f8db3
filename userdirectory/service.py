"""Resource service coordinating validation and persistence for users."""

from __future__ import annotations

import logging
from typing import Any, List

from .database import Database
from .errors import DuplicateEmailError, StorageError, UserNotFoundError
from .models import User
from .schemas import validate_user_payload

logger = logging.getLogger("userdirectory.service")


class UserService:
    """Validate, persist and return user records.

    The service holds no per-request state. Validation failures are raised
    before the database is touched; storage failures other than a duplicate
    email are logged here and re-raised so callers can answer with an opaque
    internal error.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    @property
    def database(self) -> Database:
        return self._database

    def list_users(self) -> List[User]:
        try:
            return self._database.list_users()
        except StorageError:
            logger.exception("Failed to list users")
            raise

    def get_user(self, user_id: int) -> User:
        try:
            return self._database.get_user(user_id)
        except StorageError:
            logger.exception("Failed to load user %s", user_id)
            raise

    def create_user(self, payload: Any) -> User:
        fields = validate_user_payload(payload)

        try:
            user = self._database.create_user(fields)
        except DuplicateEmailError:
            logger.info("Rejected user creation: email %s already exists", fields["email"])
            raise
        except StorageError:
            logger.exception("Failed to create user")
            raise

        logger.info("Created user %s <%s>", user.id, user.email)
        return user

    def update_user(self, user_id: int, payload: Any) -> User:
        fields = validate_user_payload(payload, partial=True)

        # Existence is checked before mutating so a missing id wins over a conflict.
        self.get_user(user_id)

        try:
            user = self._database.update_user(user_id, fields)
        except DuplicateEmailError:
            logger.info(
                "Rejected update of user %s: email %s already exists",
                user_id,
                fields.get("email"),
            )
            raise
        except UserNotFoundError:
            logger.info("User %s disappeared before it could be updated", user_id)
            raise
        except StorageError:
            logger.exception("Failed to update user %s", user_id)
            raise

        logger.info("Updated user %s (fields: %s)", user.id, ", ".join(sorted(fields)) or "none")
        return user

    def delete_user(self, user_id: int) -> None:
        self.get_user(user_id)

        try:
            self._database.delete_user(user_id)
        except StorageError:
            logger.exception("Failed to delete user %s", user_id)
            raise

        logger.info("Deleted user %s", user_id)


__all__ = ["UserService"]
