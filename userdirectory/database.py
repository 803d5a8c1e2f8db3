"""SQLite-backed persistence for user records."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import DuplicateEmailError, StorageError, UserNotFoundError
from .models import User, UserRole, UserStatus

_MUTABLE_COLUMNS = ("name", "email", "avatar", "role", "status")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    return "UNIQUE" in str(exc).upper()


class Database:
    """Simple wrapper around SQLite for persisting users.

    Every method opens its own connection, so a single instance can be shared
    across request handlers. The UNIQUE constraint on ``email`` is the only
    coordination point between concurrent writers.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _session(
        self, *, email: Optional[str] = None, user_id: Optional[int] = None
    ) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed."""

        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"Unable to open database at {self._path}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError as exc:
            if _is_unique_violation(exc):
                raise DuplicateEmailError(email) from exc
            raise StorageError("Database constraint violated") from exc
        except OverflowError as exc:
            # No stored row can carry an id outside SQLite's 64-bit INTEGER range.
            raise UserNotFoundError(user_id) from exc
        except sqlite3.Error as exc:
            raise StorageError("Database operation failed") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the users table if it does not already exist."""

        with self._session() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL COLLATE NOCASE,
                    avatar TEXT,
                    role TEXT NOT NULL DEFAULT 'user',
                    status TEXT NOT NULL DEFAULT 'active',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    CONSTRAINT users_email_unique UNIQUE (email)
                );
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        with self._session() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users(self) -> int:
        with self._session() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])

    def get_user(self, user_id: int) -> User:
        with self._session(user_id=user_id) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise UserNotFoundError(user_id)
        return self._row_to_user(row)

    def create_user(self, fields: Mapping[str, Any]) -> User:
        """Insert a new user; ``id`` and both timestamps are assigned here."""

        created_at = _serialize_datetime(_current_timestamp())
        email = fields["email"]

        with self._session(email=email) as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (name, email, avatar, role, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    fields["name"],
                    email,
                    fields.get("avatar"),
                    fields.get("role") or UserRole.USER.value,
                    fields.get("status") or UserStatus.ACTIVE.value,
                    created_at,
                    created_at,
                ),
            )
            row = conn.execute(
                "SELECT * FROM users WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()

        return self._row_to_user(row)

    def update_user(self, user_id: int, fields: Mapping[str, Any]) -> User:
        """Merge ``fields`` onto an existing row and refresh ``updated_at``."""

        changes: Dict[str, Any] = {
            column: fields[column] for column in _MUTABLE_COLUMNS if column in fields
        }

        with self._session(email=fields.get("email"), user_id=user_id) as conn:
            existing = conn.execute(
                "SELECT updated_at FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
            if existing is None:
                raise UserNotFoundError(user_id)

            # Clock resolution can repeat a timestamp; updated_at must still advance.
            previous = _parse_datetime(str(existing["updated_at"]))
            updated_at = max(_current_timestamp(), previous + timedelta(microseconds=1))
            changes["updated_at"] = _serialize_datetime(updated_at)

            assignments = ", ".join(f"{column} = ?" for column in changes)
            conn.execute(
                f"UPDATE users SET {assignments} WHERE id = ?",
                (*changes.values(), user_id),
            )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        return self._row_to_user(row)

    def delete_user(self, user_id: int) -> None:
        with self._session(user_id=user_id) as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            deleted = cursor.rowcount
        if deleted == 0:
            raise UserNotFoundError(user_id)

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            avatar=row["avatar"],
            role=UserRole(row["role"]),
            status=UserStatus(row["status"]),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
